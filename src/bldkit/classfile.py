"""
Module descriptor patching.

Adds or replaces the ``ModuleMainClass`` attribute of a compiled
``module-info.class`` without touching anything else: the constant pool only
grows when the needed constants are missing and the attribute is rewritten
in place when it already exists, so patching twice with the same main class
gives the same bytes as patching once.

Layout follows the JVM class file format (JVMS chapter 4): big-endian
``u2``/``u4`` fields, a 1-based constant pool where ``Long`` and ``Double``
take two slots, then fields, methods and class attributes.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional

from bldkit.exceptions import DescriptorPatchError

MODULE_INFO_CLASS = "module-info.class"
MODULE_MAIN_CLASS = b"ModuleMainClass"

_MAGIC = 0xCAFEBABE
_ACC_MODULE = 0x8000

_CONSTANT_UTF8 = 1
_CONSTANT_CLASS = 7

# payload sizes of the fixed-size constant pool entries
_CONSTANT_SIZES: dict[int, int] = {
    3: 4,  # Integer
    4: 4,  # Float
    5: 8,  # Long
    6: 8,  # Double
    7: 2,  # Class
    8: 2,  # String
    9: 4,  # Fieldref
    10: 4,  # Methodref
    11: 4,  # InterfaceMethodref
    12: 4,  # NameAndType
    15: 3,  # MethodHandle
    16: 2,  # MethodType
    17: 4,  # Dynamic
    18: 4,  # InvokeDynamic
    19: 2,  # Module
    20: 2,  # Package
}
_TWO_SLOT = frozenset({5, 6})


@dataclass
class _ClassFile:
    pool_count: int
    pool_end: int
    access_flags: int
    attributes_offset: int
    attributes_end: int
    attributes: list[tuple[int, int, int]]  # (name index, start, end)
    utf8_index: dict[bytes, int] = field(default_factory=dict)
    utf8_value: dict[int, bytes] = field(default_factory=dict)
    class_by_name: dict[int, int] = field(default_factory=dict)
    name_of_class: dict[int, int] = field(default_factory=dict)


def _u2(data: bytes, offset: int) -> int:
    return struct.unpack_from(">H", data, offset)[0]


def _u4(data: bytes, offset: int) -> int:
    return struct.unpack_from(">I", data, offset)[0]


def _skip_members(data: bytes, pos: int) -> int:
    """Skip a fields or methods table starting at its count."""
    count = _u2(data, pos)
    pos += 2
    for _ in range(count):
        pos += 6  # access_flags, name_index, descriptor_index
        attributes_count = _u2(data, pos)
        pos += 2
        for _ in range(attributes_count):
            pos += 2 + 4 + _u4(data, pos + 2)
    return pos


def _parse(data: bytes) -> _ClassFile:
    if len(data) < 10 or _u4(data, 0) != _MAGIC:
        raise DescriptorPatchError("Not a class file: bad magic number")

    pool_count = _u2(data, 8)
    parsed = _ClassFile(pool_count, 0, 0, 0, 0, [])
    pos = 10
    index = 1
    while index < pool_count:
        tag = data[pos]
        if tag == _CONSTANT_UTF8:
            length = _u2(data, pos + 1)
            value = bytes(data[pos + 3 : pos + 3 + length])
            if len(value) != length:
                raise DescriptorPatchError("Truncated constant pool")
            parsed.utf8_index.setdefault(value, index)
            parsed.utf8_value[index] = value
            pos += 3 + length
        elif tag in _CONSTANT_SIZES:
            if tag == _CONSTANT_CLASS:
                name_index = _u2(data, pos + 1)
                parsed.class_by_name.setdefault(name_index, index)
                parsed.name_of_class[index] = name_index
            pos += 1 + _CONSTANT_SIZES[tag]
        else:
            raise DescriptorPatchError(f"Unknown constant pool tag {tag} at index {index}")
        index += 2 if tag in _TWO_SLOT else 1
    parsed.pool_end = pos

    parsed.access_flags = _u2(data, pos)
    pos += 6  # access_flags, this_class, super_class
    pos += 2 + 2 * _u2(data, pos)  # interfaces
    pos = _skip_members(data, pos)  # fields
    pos = _skip_members(data, pos)  # methods

    parsed.attributes_offset = pos
    attributes_count = _u2(data, pos)
    pos += 2
    for _ in range(attributes_count):
        start = pos
        name_index = _u2(data, pos)
        pos += 6 + _u4(data, pos + 2)
        parsed.attributes.append((name_index, start, pos))
    if pos > len(data):
        raise DescriptorPatchError("Truncated attribute table")
    parsed.attributes_end = pos
    return parsed


def _parse_checked(data: bytes) -> _ClassFile:
    try:
        return _parse(data)
    except (struct.error, IndexError) as e:
        raise DescriptorPatchError(f"Malformed class file: {e}") from e


def _encode_modified_utf8(text: str) -> bytes:
    out = bytearray()
    for unit in _utf16_units(text):
        if 0x01 <= unit <= 0x7F:
            out.append(unit)
        elif unit <= 0x7FF:
            out += bytes([0xC0 | (unit >> 6), 0x80 | (unit & 0x3F)])
        else:
            out += bytes([0xE0 | (unit >> 12), 0x80 | ((unit >> 6) & 0x3F), 0x80 | (unit & 0x3F)])
    return bytes(out)


def _utf16_units(text: str) -> list[int]:
    raw = text.encode("utf-16-be", "surrogatepass")
    return [int.from_bytes(raw[i : i + 2], "big") for i in range(0, len(raw), 2)]


def _decode_modified_utf8(value: bytes) -> str:
    text = value.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")


def _is_main_class_attribute(parsed: _ClassFile, name_index: int) -> bool:
    return parsed.utf8_value.get(name_index) == MODULE_MAIN_CLASS


def add_module_main_class(data: bytes, main_class: str) -> bytes:
    """
    Return ``data`` with its ``ModuleMainClass`` attribute set to ``main_class``.

    Args:
        data: Bytes of a compiled module descriptor.
        main_class: Binary name of the main class, e.g. ``com.example.App``.

    Raises:
        DescriptorPatchError: If ``data`` is not a well-formed module descriptor.
    """
    parsed = _parse_checked(data)
    if not parsed.access_flags & _ACC_MODULE:
        raise DescriptorPatchError("Class file is not a module descriptor")

    appended = bytearray()
    count = parsed.pool_count

    def utf8(value: bytes) -> int:
        nonlocal count
        if value in parsed.utf8_index:
            return parsed.utf8_index[value]
        appended.extend(struct.pack(">BH", _CONSTANT_UTF8, len(value)) + value)
        parsed.utf8_index[value] = count
        count += 1
        return parsed.utf8_index[value]

    attribute_name = utf8(MODULE_MAIN_CLASS)
    class_name = utf8(_encode_modified_utf8(main_class.replace(".", "/")))
    class_index = parsed.class_by_name.get(class_name)
    if class_index is None:
        appended.extend(struct.pack(">BH", _CONSTANT_CLASS, class_name))
        class_index = count
        count += 1
    if count > 0xFFFF:
        raise DescriptorPatchError("Constant pool overflow")

    attribute = struct.pack(">HIH", attribute_name, 2, class_index)
    attributes: list[bytes] = []
    placed = False
    for name_index, start, end in parsed.attributes:
        if _is_main_class_attribute(parsed, name_index):
            if not placed:
                attributes.append(attribute)
                placed = True
            continue
        attributes.append(bytes(data[start:end]))
    if not placed:
        attributes.append(attribute)

    return b"".join(
        [
            bytes(data[:8]),
            struct.pack(">H", count),
            bytes(data[10 : parsed.pool_end]),
            bytes(appended),
            bytes(data[parsed.pool_end : parsed.attributes_offset]),
            struct.pack(">H", len(attributes)),
            *attributes,
            bytes(data[parsed.attributes_end :]),
        ]
    )


def read_module_main_class(data: bytes) -> Optional[str]:
    """Return the binary name recorded in ``ModuleMainClass``, or ``None``."""
    parsed = _parse_checked(data)
    for name_index, start, end in parsed.attributes:
        if not _is_main_class_attribute(parsed, name_index) or end - start != 8:
            continue
        name = parsed.utf8_value.get(parsed.name_of_class.get(_u2(data, start + 6), 0))
        if name is not None:
            return _decode_modified_utf8(name).replace("/", ".")
    return None
