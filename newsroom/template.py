"""A tiny substitution language used to build every HTML page.

Blueprints understand three placeholder forms:

``{}``
    replaced by the next positional value.
``{name}``
    replaced by the text value supplied under ``name``. Keys start with a
    letter or underscore and may continue with letters, digits, ``_``,
    ``-`` and ``.``.
``{?name:TrueText|FalseText}``
    replaced by ``TrueText`` when the flag ``name`` is true, otherwise by
    ``FalseText``. The first ``|`` after the ``:`` separates the branches
    and the first ``}`` after that closes the fragment, so neither branch
    may contain ``|`` or ``}``.

Inserted text is scanned for placeholders too, against the same
arguments. Passing another template's blueprint as a plain string
therefore nests it, and a ``{}`` carried in by a value consumes the next
positional value. A text value is never expanded inside itself.

Placeholders left without a matching value render as an empty string.
Any other brace (inline CSS, scripts) is copied through untouched.

A blueprint is parsed once, when the :class:`Template` is created, and a
malformed conditional raises :class:`TemplateSyntaxError` right there.
Malformed fragments inside inserted text are copied as they are.
Rendering never mutates the template and is safe to run concurrently.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from pathlib import Path
from typing import (
    Dict,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from fastapi.responses import HTMLResponse

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_.-]*")
_NAMED = re.compile(r"\{([A-Za-z_][A-Za-z0-9_.-]*)\}")


class TemplateSyntaxError(ValueError):
    """Raised when a blueprint contains a malformed conditional fragment."""


class TemplateRenderError(ValueError):
    """Raised when a template is composed into itself."""


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Flag:
    value: bool


Value = Union[Text, Flag, "Template"]


@dataclass(frozen=True)
class ArgEntry:
    """A value bound to the key of a named or conditional placeholder."""

    key: str
    value: Value

    def __post_init__(self) -> None:
        if _KEY.fullmatch(self.key) is None:
            raise ValueError(f"'{self.key}' can never match a placeholder key")

    @classmethod
    def of(cls, key: str, value: object) -> "ArgEntry":
        return cls(key, _coerce(value))


class _Literal(NamedTuple):
    text: str


class _Positional(NamedTuple):
    offset: int


class _Named(NamedTuple):
    key: str


class _Conditional(NamedTuple):
    key: str
    when_true: str
    when_false: str


_Token = Union[_Literal, _Positional, _Named, _Conditional]


def _parse(blueprint: str, *, strict: bool = True) -> Tuple[_Token, ...]:
    """Split ``blueprint`` into tokens.

    With ``strict`` unset a malformed conditional is kept as literal text
    instead of raising.
    """

    tokens: List[_Token] = []
    literal_start = 0
    cursor = 0

    def flush(upto: int) -> None:
        if upto > literal_start:
            tokens.append(_Literal(blueprint[literal_start:upto]))

    while True:
        start = blueprint.find("{", cursor)
        if start == -1:
            break

        if blueprint.startswith("{}", start):
            flush(start)
            tokens.append(_Positional(start))
            cursor = literal_start = start + 2
            continue

        if blueprint.startswith("{?", start):
            key_match = _KEY.match(blueprint, start + 2)
            problem = None
            if key_match is None or not blueprint.startswith(":", key_match.end()):
                problem = f"Conditional at offset {start} must look like '{{?key:A|B}}'"
            else:
                key = key_match.group(0)
                branches_start = key_match.end() + 1
                middle = blueprint.find("|", branches_start)
                end = blueprint.find("}", middle + 1) if middle != -1 else -1
                if middle == -1:
                    problem = f"Conditional '{key}' at offset {start} is missing '|'"
                elif end == -1:
                    problem = f"Conditional '{key}' at offset {start} is missing its closing '}}'"
            if problem is not None:
                if strict:
                    raise TemplateSyntaxError(problem)
                cursor = start + 1
                continue
            flush(start)
            tokens.append(
                _Conditional(key, blueprint[branches_start:middle], blueprint[middle + 1 : end])
            )
            cursor = literal_start = end + 1
            continue

        named = _NAMED.match(blueprint, start)
        if named is not None:
            flush(start)
            tokens.append(_Named(named.group(1)))
            cursor = literal_start = named.end()
            continue

        cursor = start + 1

    flush(len(blueprint))
    return tuple(tokens)


@functools.lru_cache(maxsize=512)
def _parse_inserted(text: str) -> Tuple[_Token, ...]:
    return _parse(text, strict=False)


def _coerce(value: object) -> Value:
    if isinstance(value, (Text, Flag, Template)):
        return value
    if isinstance(value, bool):
        return Flag(value)
    if isinstance(value, str):
        return Text(value)
    if isinstance(value, (int, float)):
        return Text(str(value))
    raise TypeError(f"Unsupported template value of type {type(value).__name__}")


class _Arguments:
    """Resolved argument list for a single render call."""

    def __init__(self, values: Sequence[object], named: Mapping[str, object]) -> None:
        positional: List[Value] = []
        self.texts: Dict[str, Value] = {}
        self.flags: Dict[str, bool] = {}

        entries: List[ArgEntry] = []
        for value in values:
            if isinstance(value, ArgEntry):
                entries.append(value)
                continue
            coerced = _coerce(value)
            if isinstance(coerced, Flag):
                raise TypeError("Positional template values must be text or templates")
            positional.append(coerced)
        entries.extend(ArgEntry.of(key, value) for key, value in named.items())

        # the first entry for a key wins, as with sequential substitution
        for entry in entries:
            if isinstance(entry.value, Flag):
                self.flags.setdefault(entry.key, entry.value.value)
            else:
                self.texts.setdefault(entry.key, entry.value)

        self.positional: Iterator[Value] = iter(positional)


class Template:
    """An immutable, pre-validated blueprint."""

    __slots__ = ("_blueprint", "_tokens", "name")

    def __init__(self, blueprint: str, *, name: Optional[str] = None) -> None:
        self._blueprint = blueprint
        self._tokens = _parse(blueprint)
        self.name = name

    @classmethod
    def from_file(cls, path: Path, *, name: Optional[str] = None) -> "Template":
        return cls(path.read_text(encoding="utf-8"), name=name or path.stem)

    @property
    def blueprint(self) -> str:
        return self._blueprint

    def __str__(self) -> str:
        return self._blueprint

    def __repr__(self) -> str:
        label = self.name or f"{len(self._blueprint)} chars"
        return f"<Template {label}>"

    def render(self, *values: object, **named: object) -> str:
        """Substitute ``values`` and ``named`` into the blueprint.

        Positional ``values`` feed ``{}`` placeholders in order, except for
        :class:`ArgEntry` items which bind a key like keyword arguments do.
        Strings and :class:`Template` values are both spliced in and their
        own placeholders are filled from the same arguments.
        """

        arguments = _Arguments(values, named)
        out: List[str] = []
        _expand(self._tokens, arguments, out, (self,))
        return "".join(out)

    def render_html(self, *values: object, status_code: int = 200, **named: object) -> HTMLResponse:
        return HTMLResponse(self.render(*values, **named), status_code=status_code)


# ``active`` holds the templates and text keys currently being expanded
_Active = Tuple[Union[Template, str], ...]


def _expand(tokens: Sequence[_Token], arguments: _Arguments, out: List[str], active: _Active) -> None:
    for token in tokens:
        if isinstance(token, _Literal):
            out.append(token.text)
        elif isinstance(token, _Positional):
            _emit(next(arguments.positional, None), None, arguments, out, active)
        elif isinstance(token, _Named):
            if token.key not in active:
                _emit(arguments.texts.get(token.key), token.key, arguments, out, active)
        else:
            flag = arguments.flags.get(token.key)
            if flag is not None:
                out.append(token.when_true if flag else token.when_false)


def _emit(
    value: Optional[Value],
    key: Optional[str],
    arguments: _Arguments,
    out: List[str],
    active: _Active,
) -> None:
    if value is None:
        return
    if isinstance(value, Text):
        nested = active + (key,) if key is not None else active
        _expand(_parse_inserted(value.value), arguments, out, nested)
    elif isinstance(value, Template):
        if any(value is item for item in active):
            raise TemplateRenderError(f"{value!r} cannot be composed into itself")
        _expand(value._tokens, arguments, out, active + (value,))


def render(blueprint: str, *values: object, **named: object) -> str:
    """Render a one-off blueprint string."""

    return Template(blueprint).render(*values, **named)


class TemplateLibrary(Mapping[str, Template]):
    """Every page blueprint, loaded and validated once at startup."""

    def __init__(self, templates: Mapping[str, Template]) -> None:
        self._templates: Dict[str, Template] = dict(templates)

    @classmethod
    def load(cls, directory: Path = DEFAULT_TEMPLATE_DIR) -> "TemplateLibrary":
        if not directory.is_dir():
            raise FileNotFoundError(f"Template directory {directory} does not exist")
        templates: Dict[str, Template] = {}
        for path in sorted(directory.rglob("*.html")):
            key = path.relative_to(directory).with_suffix("").as_posix()
            try:
                templates[key] = Template.from_file(path, name=key)
            except TemplateSyntaxError as exc:
                raise TemplateSyntaxError(f"{key}: {exc}") from exc
        return cls(templates)

    def __getitem__(self, name: str) -> Template:
        try:
            return self._templates[name]
        except KeyError as exc:
            raise KeyError(f"Unknown template '{name}'") from exc

    def __iter__(self) -> Iterator[str]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)


__all__ = [
    "ArgEntry",
    "DEFAULT_TEMPLATE_DIR",
    "Flag",
    "Template",
    "TemplateLibrary",
    "TemplateRenderError",
    "TemplateSyntaxError",
    "Text",
    "render",
]
