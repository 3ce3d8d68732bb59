"""
Path-addressed edits on a ReportDocument.

A path is a sequence of selectors walked from the document root. Field
selectors name an existing model field (wire alias or attribute name), index
selectors address an existing list element. Only scalar leaves can be replaced;
every subtree off the path is carried over by reference.
"""
from dataclasses import dataclass
from typing import Any, Sequence, Tuple, Union
from pydantic import BaseModel, ValidationError

from autoaudit.errors import InvalidEditError, PathResolutionError
from autoaudit.models.report import ReportDocument


@dataclass(frozen=True)
class FieldSelector:
    name: str

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class IndexSelector:
    index: int

    def __str__(self):
        return str(self.index)


Selector = Union[FieldSelector, IndexSelector]
ReportPath = Tuple[Selector, ...]


def format_path(selectors: Sequence[Selector]) -> str:
    return ".".join(str(s) for s in selectors)


def parse_path(path: str) -> ReportPath:
    """Split the dotted editor form, e.g. 'detailedReviews.part1.0.answer'"""
    if not path or not path.strip():
        raise PathResolutionError("Empty report path")

    selectors = []
    for raw in path.strip().split("."):
        if not raw:
            raise PathResolutionError(f"Empty segment in report path '{path}'")
        if raw.isascii() and raw.isdigit():
            selectors.append(IndexSelector(int(raw)))
        else:
            selectors.append(FieldSelector(raw))
    return tuple(selectors)


def _field_name(model: BaseModel, name: str, walked: ReportPath) -> str:
    fields = type(model).model_fields
    if name in fields:
        return name
    for attr, info in fields.items():
        if info.alias == name:
            return attr
    where = format_path(walked) or "<root>"
    raise PathResolutionError(f"Unknown field '{name}' under {where}")


def _ensure_leaf(value: Any, walked: ReportPath):
    if isinstance(value, (BaseModel, list)):
        raise PathResolutionError(f"'{format_path(walked)}' is not a scalar field")


def _replace(node: Any, selectors: ReportPath, value: Any, walked: ReportPath) -> Any:
    selector, rest = selectors[0], selectors[1:]
    here = walked + (selector,)

    if isinstance(node, BaseModel):
        if not isinstance(selector, FieldSelector):
            raise PathResolutionError(f"Expected a field name at '{format_path(here)}'")
        attr = _field_name(node, selector.name, walked)
        current = getattr(node, attr)
        if rest:
            child = _replace(current, rest, value, here)
        else:
            _ensure_leaf(current, here)
            child = value

        updated = node.model_copy()
        try:
            setattr(updated, attr, child)
        except ValidationError as e:
            raise InvalidEditError(f"Invalid value for '{format_path(here)}': {e.errors()[0]['msg']}") from e
        return updated

    if isinstance(node, list):
        if not isinstance(selector, IndexSelector):
            raise PathResolutionError(f"Expected an index at '{format_path(here)}'")
        if not 0 <= selector.index < len(node):
            raise PathResolutionError(
                f"Index {selector.index} out of range at '{format_path(walked)}' (length {len(node)})"
            )
        current = node[selector.index]
        if rest:
            child = _replace(current, rest, value, here)
        else:
            _ensure_leaf(current, here)
            child = value

        updated = list(node)
        updated[selector.index] = child
        return updated

    raise PathResolutionError(f"'{format_path(walked)}' is a leaf and has no '{selector}'")


def _selectors(path: Union[str, Sequence[Selector]]) -> ReportPath:
    selectors = parse_path(path) if isinstance(path, str) else tuple(path)
    if not selectors:
        raise PathResolutionError("Empty report path")
    for selector in selectors:
        if not isinstance(selector, (FieldSelector, IndexSelector)):
            raise PathResolutionError(f"Unsupported path segment: {selector!r}")
    return selectors


def _check_totals(before: ReportDocument, after: ReportDocument):
    # A document that arrived inconsistent (zero-backfilled stats) is not held to its totals
    if before.tier_mismatch() is None:
        mismatch = after.tier_mismatch()
        if mismatch:
            raise InvalidEditError(f"Tier counts no longer add up: {mismatch}")


def apply(document: ReportDocument, path: Union[str, Sequence[Selector]], value: Any) -> ReportDocument:
    """
    Return a new document whose leaf at `path` is `value`.

    Raises PathResolutionError when the path does not resolve against the
    current shape and InvalidEditError when the field type rejects the value
    or the edit breaks the tier-count totals. The input document is left
    untouched.
    """
    updated = _replace(document, _selectors(path), value, ())
    _check_totals(document, updated)
    return updated


def apply_all(document: ReportDocument, edits: Sequence[Tuple[Any, Any]]) -> ReportDocument:
    """
    Apply several (path, value) edits as one change.

    Totals are checked once, after the last edit, so a question can be moved
    from one tier to another. Nothing is applied if any edit fails.
    """
    updated = document
    for path, value in edits:
        updated = _replace(updated, _selectors(path), value, ())
    _check_totals(document, updated)
    return updated
