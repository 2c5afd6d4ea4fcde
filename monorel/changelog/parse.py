"""Line-based changelog parser.

Parsing never fails: text that fits no construct is kept as description text
of the enclosing block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .model import UNRELEASED, Change, ChangeLink, Changelog, Release, Section

__all__ = ["parse_changelog"]

_HEADING_RE = re.compile(r"^(#{1,3})(?!#)(?:\s+(.*))?$")
_BULLET_RE = re.compile(r"^[-*+]\s+(.*)$")
_REFERENCE_RE = re.compile(r"^\s{0,3}\[([^\]]+)\]:\s*(\S+)\s*$")
_RELEASE_LINK_RE = re.compile(r"^\[([^\]]+)\](?:\(([^)\s]*)\))?(.*)$")
_CHANGE_LINK_RE = re.compile(r"^(.*?)\s*\(\[([^\]]+)\]\(([^)\s]+)\)\)$")
_DATE_RE = re.compile(r"^\(?(\d{4}-\d{2}-\d{2})\)?$")


@dataclass
class _SectionDraft:
    label: str
    description: list[str] = field(default_factory=list)
    changes: list[list[str]] = field(default_factory=list)
    open_change: bool = False

    def freeze(self) -> Section:
        return Section(
            label=self.label,
            description=_paragraphs(self.description),
            changes=tuple(_change(" ".join(parts)) for parts in self.changes),
        )


@dataclass
class _ReleaseDraft:
    version: str | None
    date: str | None
    link: str | None
    description: list[str] = field(default_factory=list)
    sections: list[_SectionDraft] = field(default_factory=list)

    def freeze(self, link: str | None) -> Release:
        return Release(
            version=self.version,
            date=self.date,
            link=self.link or link,
            description=_paragraphs(self.description),
            sections=tuple(s.freeze() for s in self.sections),
        )


def _paragraphs(lines: list[str]) -> str | None:
    out: list[str] = []
    for line in lines:
        if not line.strip():
            if out and out[-1]:
                out.append("")
            continue
        out.append(line.rstrip())
    while out and not out[-1]:
        out.pop()
    return "\n".join(out) or None


def _change(text: str) -> Change:
    m = _CHANGE_LINK_RE.match(text)
    if m is None or not m.group(1):
        return Change(text=text)
    return Change(text=m.group(1), link=ChangeLink(label=m.group(2), url=m.group(3)))


def _release_heading(text: str) -> _ReleaseDraft:
    link: str | None = None
    rest = ""
    m = _RELEASE_LINK_RE.match(text)
    if m is not None:
        label = m.group(1).strip()
        link = m.group(2) or None
        rest = m.group(3).strip()
    else:
        label, sep, rest = text.partition(" - ")
        label = label.strip()
        if sep:
            rest = f"- {rest}"
        else:
            head, _, last = label.rpartition(" ")
            if head and _DATE_RE.match(last):
                label, rest = head.strip(), last

    date: str | None = None
    bare = _DATE_RE.match(rest)
    if rest.startswith("-"):
        date = rest.lstrip("-").strip() or None
    elif bare is not None:
        date = bare.group(1)

    version = None if label.lower() == UNRELEASED.lower() else label
    return _ReleaseDraft(version=version, date=date, link=link)


def parse_changelog(text: str) -> Changelog:
    """Parse a Keep a Changelog style document.

    - `# Title` and the text below it form the title and description.
    - `## [1.2.0] - 2024-01-04` opens a release (`[Unreleased]` has no version).
    - `### Added` opens a section; unknown headings are kept by label.
    - `- text ([#1](url))` lines are changes; wrapped lines are rejoined.
    - `[1.2.0]: url` definitions become release links.
    """
    title: str | None = None
    preamble: list[str] = []
    releases: list[_ReleaseDraft] = []
    references: list[tuple[str, str]] = []
    release: _ReleaseDraft | None = None
    section: _SectionDraft | None = None

    for raw in text.splitlines():
        line = raw.rstrip()

        ref = _REFERENCE_RE.match(line)
        if ref is not None:
            references.append((ref.group(1).strip(), ref.group(2)))
            continue

        heading = _HEADING_RE.match(line)
        if heading is not None:
            level = len(heading.group(1))
            content = (heading.group(2) or "").strip()
            if level == 1 and title is None and release is None and not any(preamble):
                title = content
                continue
            if level == 2:
                release = _release_heading(content)
                releases.append(release)
                section = None
                continue
            if level == 3 and release is not None:
                section = _SectionDraft(label=content)
                release.sections.append(section)
                continue

        if release is None:
            preamble.append(line)
            continue
        if section is None:
            release.description.append(line)
            continue

        bullet = _BULLET_RE.match(line)
        if bullet is not None:
            section.changes.append([bullet.group(1).strip()])
            section.open_change = True
        elif not line.strip():
            section.open_change = False
        elif section.changes and (section.open_change or raw[:1].isspace()):
            section.changes[-1].append(line.strip())
            section.open_change = True
        else:
            section.description.append(line)

    # The first definition of a label wins, as in CommonMark.
    by_label: dict[str, str] = {}
    for label, url in references:
        by_label.setdefault(label.lower(), url)

    # Definitions named after a linked release belong to that release.
    linked: set[str] = set()
    frozen: list[Release] = []
    for draft in releases:
        key = (UNRELEASED if draft.version is None else draft.version).lower()
        release = draft.freeze(by_label.get(key))
        if release.link is not None:
            linked.add(key)
        frozen.append(release)

    return Changelog(
        title=title,
        description=_paragraphs(preamble),
        releases=tuple(frozen),
        references=tuple((label, url) for label, url in references if label.lower() not in linked),
    )
