#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""RPM package builder.

File layout::

    lead (96 bytes, v3)
    signature header (region tag 62, padded to 8 bytes)
    main header      (region tag 63)
    payload          (gzip-compressed newc cpio, names prefixed with ``./``)

Both headers share one encoding: an 8-byte magic, the index entry count,
the data store size, 16-byte index entries sorted by tag, then the store.
"""

from __future__ import annotations

from collections.abc import Iterable
import hashlib
import re
import struct

from attrs import define
from provide.foundation import logger
from provide.foundation.file import align_offset

from shipwright.config.defaults import ROOT_GROUP, ROOT_USER
from shipwright.exceptions import ArchiveError, InvalidDependencyString, ResourceNotFound
from shipwright.formats.base import BuildContext
from shipwright.formats.common import TreeEntry, atomic_output, gzip_bytes, walk_tree
from shipwright.formats.cpio import S_IFDIR, S_IFREG, write_cpio
from shipwright.formats.linux import stage_linux_tree, tilde_version
from shipwright.models import PackageArtifact, PackageFormat, ResolvedBundle
from shipwright.settings import BundleSettings
from shipwright.signing.checksums import file_hexdigest

RPM_LEAD_MAGIC = b"\xed\xab\xee\xdb"
RPM_HEADER_MAGIC = b"\x8e\xad\xe8\x01"
RPM_LEAD_SIZE = 96

# Header data types
RPM_INT16 = 3
RPM_INT32 = 4
RPM_STRING = 6
RPM_BIN = 7
RPM_STRING_ARRAY = 8
RPM_I18NSTRING = 9

_TYPE_ALIGNMENT = {RPM_INT16: 2, RPM_INT32: 4}

# Region tags
RPMTAG_HEADERSIGNATURES = 62
RPMTAG_HEADERIMMUTABLE = 63
RPMTAG_HEADERI18NTABLE = 100

# Signature tags
RPMSIGTAG_SHA1 = 269
RPMSIGTAG_SHA256 = 273
RPMSIGTAG_SIZE = 1000
RPMSIGTAG_MD5 = 1004
RPMSIGTAG_PAYLOADSIZE = 1007

# Main header tags
RPMTAG_NAME = 1000
RPMTAG_VERSION = 1001
RPMTAG_RELEASE = 1002
RPMTAG_EPOCH = 1003
RPMTAG_SUMMARY = 1004
RPMTAG_DESCRIPTION = 1005
RPMTAG_BUILDTIME = 1006
RPMTAG_BUILDHOST = 1007
RPMTAG_SIZE = 1009
RPMTAG_LICENSE = 1014
RPMTAG_PACKAGER = 1015
RPMTAG_GROUP = 1016
RPMTAG_URL = 1020
RPMTAG_OS = 1021
RPMTAG_ARCH = 1022
RPMTAG_PREIN = 1023
RPMTAG_POSTIN = 1024
RPMTAG_PREUN = 1025
RPMTAG_POSTUN = 1026
RPMTAG_FILESIZES = 1028
RPMTAG_FILEMODES = 1030
RPMTAG_FILERDEVS = 1033
RPMTAG_FILEMTIMES = 1034
RPMTAG_FILEDIGESTS = 1035
RPMTAG_FILELINKTOS = 1036
RPMTAG_FILEFLAGS = 1037
RPMTAG_FILEUSERNAME = 1039
RPMTAG_FILEGROUPNAME = 1040
RPMTAG_SOURCERPM = 1044
RPMTAG_PROVIDENAME = 1047
RPMTAG_REQUIREFLAGS = 1048
RPMTAG_REQUIRENAME = 1049
RPMTAG_REQUIREVERSION = 1050
RPMTAG_CONFLICTFLAGS = 1053
RPMTAG_CONFLICTNAME = 1054
RPMTAG_CONFLICTVERSION = 1055
RPMTAG_RPMVERSION = 1064
RPMTAG_PREINPROG = 1085
RPMTAG_POSTINPROG = 1086
RPMTAG_PREUNPROG = 1087
RPMTAG_POSTUNPROG = 1088
RPMTAG_OBSOLETENAME = 1090
RPMTAG_FILEDEVICES = 1095
RPMTAG_FILEINODES = 1096
RPMTAG_FILELANGS = 1097
RPMTAG_PROVIDEFLAGS = 1112
RPMTAG_PROVIDEVERSION = 1113
RPMTAG_OBSOLETEFLAGS = 1114
RPMTAG_OBSOLETEVERSION = 1115
RPMTAG_DIRINDEXES = 1116
RPMTAG_BASENAMES = 1117
RPMTAG_DIRNAMES = 1118
RPMTAG_PAYLOADFORMAT = 1124
RPMTAG_PAYLOADCOMPRESSOR = 1125
RPMTAG_PAYLOADFLAGS = 1126
RPMTAG_FILEDIGESTALGO = 5011
RPMTAG_PAYLOADDIGEST = 5092
RPMTAG_PAYLOADDIGESTALGO = 5093

PGPHASHALGO_SHA256 = 8

# Dependency sense flags
RPMSENSE_LESS = 0x02
RPMSENSE_GREATER = 0x04
RPMSENSE_EQUAL = 0x08
RPMSENSE_RPMLIB = 0x01000000

_SENSE = {
    "<": RPMSENSE_LESS,
    "<=": RPMSENSE_LESS | RPMSENSE_EQUAL,
    "=": RPMSENSE_EQUAL,
    "==": RPMSENSE_EQUAL,
    ">=": RPMSENSE_GREATER | RPMSENSE_EQUAL,
    ">": RPMSENSE_GREATER,
}

RPMLIB_REQUIRES = (
    ("rpmlib(CompressedFileNames)", "3.0.4-1"),
    ("rpmlib(FileDigests)", "4.6.0-1"),
    ("rpmlib(PayloadFilesHavePrefix)", "4.0-1"),
)

RPM_ARCHITECTURES = {
    "x86_64": ("x86_64", 1),
    "aarch64": ("aarch64", 19),
    "x86": ("i386", 1),
    "armv7": ("armv7hl", 12),
}

SCRIPT_TAGS = {
    "pre_install": (RPMTAG_PREIN, RPMTAG_PREINPROG),
    "post_install": (RPMTAG_POSTIN, RPMTAG_POSTINPROG),
    "pre_remove": (RPMTAG_PREUN, RPMTAG_PREUNPROG),
    "post_remove": (RPMTAG_POSTUN, RPMTAG_POSTUNPROG),
}

_DEPENDENCY = re.compile(r"^(?P<name>[^\s<>=]+)\s*(?:(?P<op><=|>=|==|=|<|>)\s*(?P<version>[^\s<>=]+))?$")


# =================================
# Header encoding
# =================================


@define(frozen=True)
class HeaderEntry:
    tag: int
    type: int
    value: object

    def encode(self) -> tuple[bytes, int]:
        """Store bytes and element count for this entry."""
        value = self.value
        if self.type == RPM_INT16:
            ints = list(value)  # type: ignore[call-overload]
            return struct.pack(f">{len(ints)}H", *ints), len(ints)
        if self.type == RPM_INT32:
            ints = list(value)  # type: ignore[call-overload]
            return struct.pack(f">{len(ints)}I", *ints), len(ints)
        if self.type == RPM_STRING:
            return str(value).encode("utf-8") + b"\0", 1
        if self.type == RPM_BIN:
            data = bytes(value)  # type: ignore[call-overload]
            return data, len(data)
        if self.type == RPM_STRING_ARRAY:
            items = list(value)  # type: ignore[call-overload]
            return b"".join(str(s).encode("utf-8") + b"\0" for s in items), len(items)
        if self.type == RPM_I18NSTRING:
            return str(value).encode("utf-8") + b"\0", 1
        raise ArchiveError(f"Unsupported RPM header type {self.type}")


def encode_header(entries: Iterable[HeaderEntry], region_tag: int) -> bytes:
    """Encode a header with an immutable region covering every entry."""
    ordered = sorted(entries, key=lambda e: e.tag)
    index_count = len(ordered) + 1

    index = []
    store = bytearray()
    for entry in ordered:
        data, count = entry.encode()
        alignment = _TYPE_ALIGNMENT.get(entry.type, 1)
        padded = align_offset(len(store), alignment)
        store.extend(b"\0" * (padded - len(store)))
        index.append(struct.pack(">IIiI", entry.tag, entry.type, len(store), count))
        store.extend(data)

    trailer_offset = len(store)
    store.extend(struct.pack(">IIiI", region_tag, RPM_BIN, -(index_count * 16), 16))
    region = struct.pack(">IIiI", region_tag, RPM_BIN, trailer_offset, 16)

    preamble = RPM_HEADER_MAGIC + b"\0" * 4 + struct.pack(">II", index_count, len(store))
    return preamble + region + b"".join(index) + bytes(store)


def read_header(data: bytes, offset: int = 0) -> tuple[dict[int, object], int]:
    """Decode a header at ``offset``; returns tag values and the offset just past it."""
    if data[offset : offset + 4] != RPM_HEADER_MAGIC:
        raise ArchiveError(f"Bad RPM header magic at offset {offset}")
    count, store_size = struct.unpack(">II", data[offset + 8 : offset + 16])
    index_start = offset + 16
    store_start = index_start + count * 16

    values: dict[int, object] = {}
    for i in range(count):
        tag, kind, position, items = struct.unpack(">IIiI", data[index_start + 16 * i : index_start + 16 * (i + 1)])
        start = store_start + position
        if kind == RPM_INT16:
            values[tag] = list(struct.unpack(f">{items}H", data[start : start + 2 * items]))
        elif kind == RPM_INT32:
            values[tag] = list(struct.unpack(f">{items}I", data[start : start + 4 * items]))
        elif kind == RPM_BIN:
            values[tag] = data[start : start + items]
        else:
            strings = data[start:].split(b"\0", items)[:items]
            decoded = [s.decode("utf-8") for s in strings]
            values[tag] = decoded if kind == RPM_STRING_ARRAY else decoded[0]
    return values, store_start + store_size


def encode_lead(name: str, archnum: int) -> bytes:
    encoded = name.encode("utf-8")[:65]
    return struct.pack(">4sBBhh66shh16s", RPM_LEAD_MAGIC, 3, 0, 0, archnum, encoded, 1, 5, b"\0" * 16)


# =================================
# Dependencies
# =================================


def parse_dependency(value: str) -> tuple[str, int, str]:
    """Split ``name [op version]`` into (name, sense flags, version)."""
    match = _DEPENDENCY.match(value.strip())
    if match is None:
        raise InvalidDependencyString(f"Invalid RPM dependency: '{value}'")
    op = match.group("op")
    return match.group("name"), _SENSE[op] if op else 0, match.group("version") or ""


def _dependency_entries(
    values: Iterable[str], name_tag: int, flags_tag: int, version_tag: int
) -> list[HeaderEntry]:
    parsed = [parse_dependency(v) for v in values]
    if not parsed:
        return []
    return [
        HeaderEntry(name_tag, RPM_STRING_ARRAY, [p[0] for p in parsed]),
        HeaderEntry(flags_tag, RPM_INT32, [p[1] for p in parsed]),
        HeaderEntry(version_tag, RPM_STRING_ARRAY, [p[2] for p in parsed]),
    ]


# =================================
# Builder
# =================================


def rpm_arch(arch: str) -> tuple[str, int]:
    return RPM_ARCHITECTURES[arch]


def _owned(entry: TreeEntry, package_name: str) -> bool:
    """Files are always owned; directories only when they belong to this package."""
    if not entry.is_dir:
        return True
    path = entry.path.as_posix()
    for owned_root in (f"usr/lib/{package_name}", f"usr/share/doc/{package_name}"):
        if path == owned_root or path.startswith(owned_root + "/"):
            return True
    return False


def _file_entries(entries: list[TreeEntry], mtime: int) -> list[HeaderEntry]:
    dirnames: list[str] = []
    dir_index: dict[str, int] = {}
    dirindexes, basenames = [], []
    for entry in entries:
        parent = "/" + entry.path.parent.as_posix() + "/" if entry.path.parent.as_posix() != "." else "/"
        if parent not in dir_index:
            dir_index[parent] = len(dirnames)
            dirnames.append(parent)
        dirindexes.append(dir_index[parent])
        basenames.append(entry.path.name)

    count = len(entries)
    modes = [(S_IFDIR if e.is_dir else S_IFREG) | e.mode for e in entries]
    digests = ["" if e.is_dir else file_hexdigest(e.source, "sha256") for e in entries]
    return [
        HeaderEntry(RPMTAG_FILESIZES, RPM_INT32, [0 if e.is_dir else e.size for e in entries]),
        HeaderEntry(RPMTAG_FILEMODES, RPM_INT16, modes),
        HeaderEntry(RPMTAG_FILERDEVS, RPM_INT16, [0] * count),
        HeaderEntry(RPMTAG_FILEMTIMES, RPM_INT32, [mtime] * count),
        HeaderEntry(RPMTAG_FILEDIGESTS, RPM_STRING_ARRAY, digests),
        HeaderEntry(RPMTAG_FILELINKTOS, RPM_STRING_ARRAY, [""] * count),
        HeaderEntry(RPMTAG_FILEFLAGS, RPM_INT32, [0] * count),
        HeaderEntry(RPMTAG_FILEUSERNAME, RPM_STRING_ARRAY, [ROOT_USER] * count),
        HeaderEntry(RPMTAG_FILEGROUPNAME, RPM_STRING_ARRAY, [ROOT_GROUP] * count),
        HeaderEntry(RPMTAG_FILEDEVICES, RPM_INT32, [1] * count),
        HeaderEntry(RPMTAG_FILEINODES, RPM_INT32, list(range(1, count + 1))),
        HeaderEntry(RPMTAG_FILELANGS, RPM_STRING_ARRAY, [""] * count),
        HeaderEntry(RPMTAG_DIRINDEXES, RPM_INT32, dirindexes),
        HeaderEntry(RPMTAG_BASENAMES, RPM_STRING_ARRAY, basenames),
        HeaderEntry(RPMTAG_DIRNAMES, RPM_STRING_ARRAY, dirnames),
        HeaderEntry(RPMTAG_FILEDIGESTALGO, RPM_INT32, [PGPHASHALGO_SHA256]),
    ]


def _script_entries(settings: BundleSettings) -> list[HeaderEntry]:
    entries = []
    for key, path in settings.rpm.scripts.items():
        source = settings.resolve_path(path)
        if not source.is_file():
            raise ResourceNotFound(f"Maintainer script not found: {path}")
        script_tag, prog_tag = SCRIPT_TAGS[key]
        entries.append(HeaderEntry(script_tag, RPM_STRING, source.read_text(encoding="utf-8")))
        entries.append(HeaderEntry(prog_tag, RPM_STRING, "/bin/sh"))
    return entries


def build(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext) -> PackageArtifact:
    """Build ``<name>-<version>-<release>.<arch>.rpm``."""
    name = settings.package_name
    version = tilde_version(settings.version)
    release = settings.rpm.release
    arch, archnum = rpm_arch(settings.target_arch)
    nvr = f"{name}-{version}-{release}"
    output = ctx.out_dir / f"{nvr}.{arch}.rpm"

    requires = [parse_dependency(d) for d in settings.rpm.depends]

    root = ctx.work_dir / "root"
    warnings = stage_linux_tree(resolved, settings, ctx, root, name)
    entries = sorted(
        (e for e in walk_tree(root) if _owned(e, name)),
        key=lambda e: "/" + e.path.as_posix(),
    )

    ctx.check_cancelled("payload")
    cpio = write_cpio(
        (
            (f"./{e.path.as_posix()}", e.mode, b"" if e.is_dir else e.source.read_bytes(), e.is_dir)
            for e in entries
        ),
        mtime=ctx.source_date_epoch,
    )
    payload = gzip_bytes(cpio)

    provides = [parse_dependency(p) for p in settings.rpm.provides]
    full_version = f"{settings.rpm.epoch}:{version}-{release}" if settings.rpm.epoch is not None else f"{version}-{release}"
    provides.append((name, RPMSENSE_EQUAL, full_version))
    rpmlib = [(req, RPMSENSE_RPMLIB | RPMSENSE_LESS | RPMSENSE_EQUAL, ver) for req, ver in RPMLIB_REQUIRES]
    all_requires = requires + rpmlib

    header_entries = [
        HeaderEntry(RPMTAG_HEADERI18NTABLE, RPM_STRING_ARRAY, ["C"]),
        HeaderEntry(RPMTAG_NAME, RPM_STRING, name),
        HeaderEntry(RPMTAG_VERSION, RPM_STRING, version),
        HeaderEntry(RPMTAG_RELEASE, RPM_STRING, release),
        HeaderEntry(RPMTAG_SUMMARY, RPM_I18NSTRING, settings.description or settings.product_name),
        HeaderEntry(
            RPMTAG_DESCRIPTION,
            RPM_I18NSTRING,
            settings.long_description or settings.description or settings.product_name,
        ),
        HeaderEntry(RPMTAG_BUILDTIME, RPM_INT32, [ctx.source_date_epoch]),
        HeaderEntry(RPMTAG_BUILDHOST, RPM_STRING, "localhost"),
        HeaderEntry(RPMTAG_SIZE, RPM_INT32, [sum(e.size for e in entries if not e.is_dir)]),
        HeaderEntry(RPMTAG_LICENSE, RPM_STRING, "Unspecified"),
        HeaderEntry(RPMTAG_PACKAGER, RPM_STRING, settings.maintainer),
        HeaderEntry(RPMTAG_GROUP, RPM_I18NSTRING, "Unspecified"),
        HeaderEntry(RPMTAG_OS, RPM_STRING, "linux"),
        HeaderEntry(RPMTAG_ARCH, RPM_STRING, arch),
        HeaderEntry(RPMTAG_SOURCERPM, RPM_STRING, f"{nvr}.src.rpm"),
        HeaderEntry(RPMTAG_RPMVERSION, RPM_STRING, "4.16.0"),
        HeaderEntry(RPMTAG_PROVIDENAME, RPM_STRING_ARRAY, [p[0] for p in provides]),
        HeaderEntry(RPMTAG_PROVIDEFLAGS, RPM_INT32, [p[1] for p in provides]),
        HeaderEntry(RPMTAG_PROVIDEVERSION, RPM_STRING_ARRAY, [p[2] for p in provides]),
        HeaderEntry(RPMTAG_REQUIRENAME, RPM_STRING_ARRAY, [r[0] for r in all_requires]),
        HeaderEntry(RPMTAG_REQUIREFLAGS, RPM_INT32, [r[1] for r in all_requires]),
        HeaderEntry(RPMTAG_REQUIREVERSION, RPM_STRING_ARRAY, [r[2] for r in all_requires]),
        HeaderEntry(RPMTAG_PAYLOADFORMAT, RPM_STRING, "cpio"),
        HeaderEntry(RPMTAG_PAYLOADCOMPRESSOR, RPM_STRING, "gzip"),
        HeaderEntry(RPMTAG_PAYLOADFLAGS, RPM_STRING, "9"),
        HeaderEntry(RPMTAG_PAYLOADDIGEST, RPM_STRING_ARRAY, [hashlib.sha256(payload).hexdigest()]),
        HeaderEntry(RPMTAG_PAYLOADDIGESTALGO, RPM_INT32, [PGPHASHALGO_SHA256]),
    ]
    if settings.rpm.epoch is not None:
        header_entries.append(HeaderEntry(RPMTAG_EPOCH, RPM_INT32, [settings.rpm.epoch]))
    if settings.homepage:
        header_entries.append(HeaderEntry(RPMTAG_URL, RPM_STRING, settings.homepage))
    header_entries.extend(
        _dependency_entries(settings.rpm.conflicts, RPMTAG_CONFLICTNAME, RPMTAG_CONFLICTFLAGS, RPMTAG_CONFLICTVERSION)
    )
    header_entries.extend(
        _dependency_entries(settings.rpm.obsoletes, RPMTAG_OBSOLETENAME, RPMTAG_OBSOLETEFLAGS, RPMTAG_OBSOLETEVERSION)
    )
    header_entries.extend(_script_entries(settings))
    if entries:
        header_entries.extend(_file_entries(entries, ctx.source_date_epoch))

    header = encode_header(header_entries, RPMTAG_HEADERIMMUTABLE)

    signature = encode_header(
        [
            HeaderEntry(RPMSIGTAG_SHA1, RPM_STRING, hashlib.sha1(header).hexdigest()),  # noqa: S324
            HeaderEntry(RPMSIGTAG_SHA256, RPM_STRING, hashlib.sha256(header).hexdigest()),
            HeaderEntry(RPMSIGTAG_SIZE, RPM_INT32, [len(header) + len(payload)]),
            HeaderEntry(RPMSIGTAG_MD5, RPM_BIN, hashlib.md5(header + payload).digest()),  # noqa: S324
            HeaderEntry(RPMSIGTAG_PAYLOADSIZE, RPM_INT32, [len(cpio)]),
        ],
        RPMTAG_HEADERSIGNATURES,
    )
    signature += b"\0" * (align_offset(len(signature), 8) - len(signature))

    ctx.check_cancelled("publish")
    with atomic_output(output) as temp, temp.open("wb") as f:
        f.write(encode_lead(nvr, archnum))
        f.write(signature)
        f.write(header)
        f.write(payload)

    logger.info(f"📦 Built RPM package: {output.name}", files=len(entries), payload_size=len(payload))
    return PackageArtifact(path=output, format=PackageFormat.RPM, warnings=tuple(warnings))


# 🚢📦🔚
