"""Keep a Changelog documents: model, parser, renderer and release generator."""

from .generate import Entry, generate_release, group_entries
from .model import Category, Change, ChangeLink, Changelog, Release, Section
from .parse import parse_changelog
from .render import render_change, render_changelog, render_release, render_release_notes

__all__ = [
    "Category",
    "Change",
    "ChangeLink",
    "Changelog",
    "Entry",
    "Release",
    "Section",
    "generate_release",
    "group_entries",
    "parse_changelog",
    "render_change",
    "render_changelog",
    "render_release",
    "render_release_notes",
]
