from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from newsroom.template import (
    DEFAULT_TEMPLATE_DIR,
    ArgEntry,
    Flag,
    Template,
    TemplateLibrary,
    TemplateRenderError,
    TemplateSyntaxError,
    Text,
    render,
)


def test_positional_placeholders_fill_in_order() -> None:
    assert render("{} and {}", "salt", "pepper") == "salt and pepper"


def test_missing_positional_values_render_empty() -> None:
    assert render("[{}][{}]", "only") == "[only][]"


def test_named_placeholder_replaces_every_occurrence() -> None:
    assert render("{name}, {name}!", name="Ada") == "Ada, Ada!"


def test_unresolved_named_placeholder_is_deleted() -> None:
    assert render("Hello {name}.") == "Hello ."


def test_conditional_picks_branch_by_flag() -> None:
    blueprint = "<p>{?ok:yes|no}</p>"
    assert render(blueprint, ok=True) == "<p>yes</p>"
    assert render(blueprint, ok=False) == "<p>no</p>"


def test_conditional_without_flag_is_deleted() -> None:
    assert render("a{?ok:yes|no}b") == "ab"


def test_conditional_branches_may_be_empty() -> None:
    assert render("<p {?hide:hidden|}>", hide=True) == "<p hidden>"
    assert render("<p {?hide:hidden|}>", hide=False) == "<p >"


def test_false_branch_whitespace_is_kept() -> None:
    assert render("{?ok:a| b }", ok=False) == " b "


def test_named_and_conditional_keys_are_independent() -> None:
    assert render("{x}/{?x:T|F}", x="text") == "text/"
    assert render("{x}/{?x:T|F}", x=True) == "/T"


def test_first_entry_for_a_key_wins() -> None:
    output = render("{who}", ArgEntry.of("who", "first"), ArgEntry.of("who", "second"))
    assert output == "first"

    output = render("{who}", ArgEntry.of("who", "positional"), who="keyword")
    assert output == "positional"


def test_arg_entries_do_not_consume_positional_slots() -> None:
    assert render("{}-{k}-{}", "a", ArgEntry.of("k", "K"), "b") == "a-K-b"


def test_inserted_text_is_resolved_against_the_same_arguments() -> None:
    assert render("{a}|{b}", a="{b}", b="done") == "done|done"
    assert render("{}", "{}") == ""
    assert render("[{}]", "<{}>", "inner") == "[<inner>]"


def test_blueprint_passed_as_text_nests() -> None:
    body = Template("<p>{x}</p><i>{}</i>").blueprint
    assert render("<main>{body}</main>", body=body, x="hi") == "<main><p>hi</p><i></i></main>"


def test_nested_blueprint_conditionals_use_shared_flags() -> None:
    body = Template("{?admin:<b>admin</b>|guest}").blueprint
    assert render("<nav>{body}</nav>", body=body, admin=True) == "<nav><b>admin</b></nav>"


def test_leftover_placeholders_in_inserted_text_are_swept() -> None:
    assert render("<div>{main}</div>", main="a{missing}b{}c") == "<div>abc</div>"


def test_text_value_is_not_expanded_inside_itself() -> None:
    assert render("{a}", a="x{a}y") == "xy"
    assert render("{a}", a="1{b}", b="2{a}") == "12"


def test_malformed_fragment_in_inserted_text_is_copied() -> None:
    assert render("<p>{body}</p>", body="{?oops no bar}") == "<p>{?oops no bar}</p>"


def test_braces_that_are_not_placeholders_are_kept() -> None:
    blueprint = "<style>body { margin: 0 }</style>{x}{ y }{1abc}"
    assert render(blueprint, x="!") == "<style>body { margin: 0 }</style>!{ y }{1abc}"


def test_non_string_values_are_coerced() -> None:
    assert render("{count} items at {price}", count=3, price=1.5) == "3 items at 1.5"
    assert render("{a}", a=Text("raw")) == "raw"
    assert render("{?a:on|off}", a=Flag(True)) == "on"


def test_positional_flag_is_rejected() -> None:
    with pytest.raises(TypeError):
        render("{}", True)


def test_unsupported_value_type_is_rejected() -> None:
    with pytest.raises(TypeError):
        render("{a}", a=object())


def test_template_values_are_composed_with_the_same_arguments() -> None:
    inner = Template("<b>{name}</b>{?admin:*|}")
    outer = Template("<div>{body}</div>")
    assert outer.render(body=inner, name="Ada", admin=True) == "<div><b>Ada</b>*</div>"


def test_composed_template_draws_from_shared_positional_values() -> None:
    inner = Template("[{}]")
    assert render("{} {inner} {}", "a", "b", "c", inner=inner) == "a [b] c"


def test_self_composition_is_an_error() -> None:
    looping = Template("again {me}")
    with pytest.raises(TemplateRenderError):
        looping.render(me=looping)


def test_mutual_composition_is_an_error() -> None:
    first = Template("1{second}")
    second = Template("2{first}")
    with pytest.raises(TemplateRenderError):
        first.render(first=first, second=second)


def test_same_template_may_appear_twice_side_by_side() -> None:
    item = Template("<li>{label}</li>")
    assert render("{a}{b}", a=item, b=item, label="x") == "<li>x</li><li>x</li>"


@pytest.mark.parametrize(
    "blueprint",
    [
        "{?flag}",
        "{?flag:yes}",
        "{?flag:yes|no",
        "{?:yes|no}",
        "{?1flag:yes|no}",
    ],
)
def test_malformed_conditionals_fail_at_construction(blueprint: str) -> None:
    with pytest.raises(TemplateSyntaxError):
        Template(blueprint)


def test_rendering_does_not_mutate_the_template() -> None:
    template = Template("{greeting}, {}")
    assert template.render("Ada", greeting="Hi") == "Hi, Ada"
    assert template.render("Bob", greeting="Yo") == "Yo, Bob"
    assert template.blueprint == "{greeting}, {}"
    assert str(template) == "{greeting}, {}"


def test_concurrent_renders_share_one_template() -> None:
    template = Template("<p>{}:{name}:{?flag:T|F}</p>")
    failures: list[str] = []

    def worker(index: int) -> None:
        for _ in range(200):
            expected = f"<p>{index}:n{index}:{'T' if index % 2 else 'F'}</p>"
            got = template.render(str(index), name=f"n{index}", flag=bool(index % 2))
            if got != expected:
                failures.append(got)

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert failures == []


def test_render_html_wraps_output_in_response() -> None:
    response = Template("<h1>{title}</h1>").render_html(title="News", status_code=404)
    assert response.status_code == 404
    assert response.body == b"<h1>News</h1>"
    assert response.media_type == "text/html"


def test_library_loads_bundled_templates() -> None:
    library = TemplateLibrary.load(DEFAULT_TEMPLATE_DIR)
    assert "header" in library
    assert "errors/not_authorized" in library
    assert "Not authorized" in library["errors/not_authorized"].render()
    with pytest.raises(KeyError):
        library["missing"]


def test_library_reports_broken_template_by_name(tmp_path: Path) -> None:
    (tmp_path / "good.html").write_text("<p>{x}</p>", encoding="utf-8")
    (tmp_path / "pages").mkdir()
    (tmp_path / "pages" / "bad.html").write_text("{?oops:missing bar}", encoding="utf-8")

    with pytest.raises(TemplateSyntaxError, match="pages/bad"):
        TemplateLibrary.load(tmp_path)


def test_library_requires_existing_directory(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        TemplateLibrary.load(tmp_path / "absent")


def test_keys_may_contain_hyphens_and_dots() -> None:
    blueprint = "{user-name} / {site.title} / {?is-admin:yes|no}"
    output = render(
        blueprint,
        ArgEntry.of("user-name", "ada"),
        ArgEntry.of("site.title", "Planet"),
        ArgEntry.of("is-admin", True),
    )
    assert output == "ada / Planet / yes"


@pytest.mark.parametrize("key", ["", "has space", "1st", "a}b"])
def test_keys_that_cannot_match_are_rejected(key: str) -> None:
    with pytest.raises(ValueError):
        ArgEntry.of(key, "value")
