"""Changelog rendering.

`render_changelog` is the left inverse of `parse_changelog`: re-parsing the
output yields an equal Changelog. Whitespace is normalised (one blank line
between blocks, a single trailing newline), so hand-written input may not
come back byte-for-byte.
"""

from __future__ import annotations

from .model import Change, Changelog, Release, Section

__all__ = ["render_change", "render_changelog", "render_release", "render_release_notes"]


def render_change(change: Change) -> str:
    if change.link is None:
        return f"- {change.text}"
    return f"- {change.text} ([{change.link.label}]({change.link.url}))"


def _render_section(section: Section) -> list[str]:
    blocks = [f"### {section.label}".rstrip()]
    if section.description:
        blocks.append(section.description)
    if section.changes:
        blocks.append("\n".join(render_change(c) for c in section.changes))
    return blocks


def _heading(release: Release) -> str:
    label = release.label
    if not label:
        text = "##"
    elif "]" in label:
        # Brackets cannot hold this label; it is parsed back up to " - ".
        text = f"## {label}"
    else:
        text = f"## [{label}]"
    if release.date:
        text += f" - {release.date}"
    return text


def render_release(release: Release) -> str:
    """Render one release block (heading, description, sections)."""
    blocks = [_heading(release)]
    if release.description:
        blocks.append(release.description)
    for section in release.sections:
        blocks.extend(_render_section(section))
    return "\n\n".join(blocks) + "\n"


def render_release_notes(release: Release, *, description: str | None = None) -> str:
    """Render a release without its heading, for pull request bodies.

    `description` replaces the release's own description when given.
    """
    blocks: list[str] = []
    text = description if description is not None else release.description
    if text:
        blocks.append(text)
    for section in release.sections:
        blocks.extend(_render_section(section))
    return "\n\n".join(blocks) + "\n" if blocks else ""


def render_changelog(changelog: Changelog) -> str:
    blocks: list[str] = []
    if changelog.title is not None:
        blocks.append(f"# {changelog.title}".rstrip())
    if changelog.description:
        blocks.append(changelog.description)
    for release in changelog.releases:
        blocks.append(render_release(release).rstrip("\n"))

    references = [
        (r.label, r.link) for r in changelog.releases if r.link and r.label and "]" not in r.label
    ]
    linked = {label.lower() for label, _ in references}
    references.extend(
        (label, url) for label, url in changelog.references if label.lower() not in linked
    )
    if references:
        blocks.append("\n".join(f"[{label}]: {url}" for label, url in references))

    if not blocks:
        return ""
    return "\n\n".join(blocks) + "\n"
