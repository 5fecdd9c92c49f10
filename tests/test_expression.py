from __future__ import annotations

import copy
from typing import Any

import pytest
from pytest import raises

from zefiro.core.exception import (
    ExpressionSyntaxError,
    ExpressionTypeError,
    UndefinedReference,
    UnsupportedExpression,
)
from zefiro.cwl import expression
from zefiro.cwl.utils import build_context


@pytest.fixture
def context() -> dict[str, Any]:
    return build_context(
        inputs={
            "n": 3,
            "list": [1, 2, 3],
            "opt": None,
            "out_file": "output.txt",
            "output_location_subdir": "output/",
            "rec": {"b": 2, "a": "x"},
        },
        self_value=[{"class": "File", "location": "output.txt"}],
        runtime={"outdir": "/tmp/out", "cores": 2},
    )


def test_parameter_reference(context):
    """Check that a parameter reference yields the referenced value unchanged."""
    assert expression.interpolate("$(inputs.out_file)", context) == "output.txt"


def test_parameter_reference_native_type(context):
    """Check that a field made of a single region keeps the native type of its value."""
    assert expression.interpolate("$(inputs.list)", context) == [1, 2, 3]
    assert expression.interpolate("  $(inputs.n)  ", context) == 3
    assert expression.interpolate("$(runtime.cores)", context) == 2


def test_parameter_reference_index(context):
    """Check dotted, bracketed and indexed access."""
    assert expression.interpolate("$(inputs.list[1])", context) == 2
    assert expression.interpolate("$(inputs['out_file'])", context) == "output.txt"
    assert expression.interpolate('$(inputs["rec"].a)', context) == "x"
    assert expression.interpolate("$(inputs.list.length)", context) == 3
    assert expression.interpolate("$(self[0].location)", context) == "output.txt"


def test_interpolation(context):
    """Check that regions embedded in literal text are concatenated as strings."""
    assert (
        expression.interpolate("prefix-$(inputs.n)-$(inputs.out_file)", context)
        == "prefix-3-output.txt"
    )
    assert expression.interpolate("x=$(inputs.rec)", context) == 'x={"a": "x", "b": 2}'
    assert expression.interpolate("v=$(inputs.opt)", context) == "v=null"


def test_escaped_region(context):
    """Check that escaped regions are kept as literal text."""
    assert expression.interpolate("\\$(inputs.n)", context) == "$(inputs.n)"
    assert expression.interpolate("\\\\$(inputs.n)", context) == "\\3"
    assert not expression.needs_expression("\\$(inputs.n)")
    assert expression.needs_expression("a $(inputs.n)")


def test_output_eval_location(context):
    """Check that appending to the location of a File prefixes it with the given text."""
    result = expression.interpolate(
        "${self[0].location += inputs.output_location_subdir; return self[0]}",
        context,
    )
    assert result["class"] == "File"
    assert result["location"] == "output/output.txt"


def test_context_not_modified(context):
    """Check that mutations inside a script block never leak into the caller context."""
    original = copy.deepcopy(context)
    expression.interpolate(
        "${self[0].location = 'changed'; return self[0]}", context
    )
    assert context == original


def test_script_block(context):
    """Check declarations, conditionals and returns inside a script block."""
    script = (
        "${ var x = inputs.n * 2; "
        "if (x > 5) { return 'big'; } else { return 'small'; } }"
    )
    assert expression.interpolate(script, context) == "big"
    assert expression.interpolate("${ let y = 1; y += 2; return y; }", context) == 3
    assert expression.interpolate("${ return; }", context) is None
    assert expression.interpolate("${ var z = 1; }", context) is None


def test_script_concatenation(context):
    """Check string concatenation with numbers, booleans and null."""
    assert expression.interpolate("${ return 'n=' + inputs.n; }", context) == "n=3"
    assert expression.interpolate("${ return 'f=' + 2.0; }", context) == "f=2"
    assert expression.interpolate("${ return 'b=' + true; }", context) == "b=true"
    assert expression.interpolate("${ return 'o=' + inputs.opt; }", context) == "o=null"


def test_script_comments(context):
    """Check that quotes and brackets inside comments do not end a script block."""
    assert expression.interpolate("${ // don't\n return 1; }", context) == 1
    assert expression.interpolate("${ /* it's } */ return inputs.n; }", context) == 3
    assert (
        expression.interpolate("${ return 'a' + /* \" */ 'b'; } // x", context)
        == "ab // x"
    )
    with raises(ExpressionSyntaxError):
        expression.interpolate("${ return 1; /* }", context)


def test_operators(context):
    """Check arithmetic, comparison, logical and ternary operators."""
    assert expression.interpolate("$(inputs.n + 1)", context) == 4
    assert expression.interpolate("$(inputs.n / 3)", context) == 1
    assert expression.interpolate("$(7 / 2)", context) == 3.5
    assert expression.interpolate("$(-7 % 3)", context) == -1
    assert expression.interpolate("$(inputs.n > 2 ? 'yes' : 'no')", context) == "yes"
    assert expression.interpolate("$(inputs.opt || 'fallback')", context) == "fallback"
    assert expression.interpolate("$(inputs.n === 3 && !inputs.opt)", context) is True
    assert expression.interpolate("$(inputs.n == '3')", context) is False


def test_methods(context):
    """Check the supported string and array methods."""
    assert expression.interpolate("$(inputs.out_file.split('.')[0])", context) == "output"
    assert expression.interpolate("$(inputs.list.join('-'))", context) == "1-2-3"
    assert expression.interpolate("$(inputs.out_file.toUpperCase())", context) == "OUTPUT.TXT"
    assert (
        expression.interpolate("$(inputs.out_file.replace('.txt', '.gz'))", context)
        == "output.gz"
    )
    assert expression.interpolate("$(inputs.list.slice(1))", context) == [2, 3]


def test_optional_input_is_null(context):
    """Check that an unbound optional input resolves to null."""
    assert expression.interpolate("$(inputs.opt)", context) is None


def test_undefined_reference(context):
    """Check that missing references raise an UndefinedReference error."""
    with raises(UndefinedReference):
        expression.interpolate("$(inputs.missing)", context)
    with raises(UndefinedReference):
        expression.interpolate("$(inputs.opt.basename)", context)
    with raises(UndefinedReference):
        expression.interpolate("$(inputs.list[5])", context)
    with raises(UndefinedReference):
        expression.interpolate("$(unknown)", context)


def test_type_error(context):
    """Check that operators applied to incompatible operands raise a type error."""
    with raises(ExpressionTypeError):
        expression.interpolate("${ return inputs.n - 'a'; }", context)
    with raises(ExpressionTypeError):
        expression.interpolate("$(inputs.list + 1)", context)
    with raises(ExpressionTypeError):
        expression.interpolate("$(inputs.n / 0)", context)
    with raises(ExpressionTypeError):
        expression.interpolate("${ const c = 1; c = 2; return c; }", context)


def test_read_only_context(context):
    """Check that `inputs` and its aliases cannot be modified by a script block."""
    with raises(ExpressionTypeError):
        expression.interpolate("${ inputs.n = 4; return inputs.n; }", context)
    for script in (
        "${ var x = inputs; x.a = 1; return x; }",
        "${ var r = inputs.rec; r.b += 1; return r; }",
        "${ var o = {value: inputs.list}; o.value[0] = 5; return o; }",
        "${ var l = inputs.list.slice(); l[0] = 9; var rt = runtime; rt.cores = 1; }",
    ):
        with raises(ExpressionTypeError):
            expression.interpolate(script, context)
    assert expression.interpolate(
        "${ var l = inputs.list.slice(1); l[0] = 9; return l; }", context
    ) == [9, 3]
    assert expression.interpolate(
        "${ var s = self[0]; s.basename = 'x'; return s.basename; }", context
    ) == "x"


def test_unsupported_constructs(context):
    """Check that loops, functions and external calls are rejected."""
    for script in (
        "${ for (var i = 0; i < 3; i++) {} return 1; }",
        "${ while (true) {} }",
        "${ function f() { return 1; } return f(); }",
        "${ return new Date(); }",
        "${ var f = (x) => x; return 1; }",
        "$(Math.max(1, 2))",
        "$(`template`)",
    ):
        with raises(UnsupportedExpression):
            expression.interpolate(script, context)


def test_syntax_error(context):
    """Check that malformed regions raise a syntax error with an offset."""
    with raises(ExpressionSyntaxError) as exc_info:
        expression.interpolate("abc $(inputs.)", context)
    assert exc_info.value.offset is not None
    with raises(ExpressionSyntaxError):
        expression.interpolate("$(inputs.n", context)
    with raises(ExpressionSyntaxError):
        expression.interpolate("${ var = 1; }", context)
    with raises(ExpressionSyntaxError):
        expression.interpolate("$()", context)
    with raises(ExpressionSyntaxError):
        expression.interpolate("${ var x = 1 return x }", context)
    with raises(ExpressionSyntaxError):
        expression.interpolate("${ var x = inputs.n x += 1; return x; }", context)


def test_statement_separators(context):
    """Check that statements may be separated by a semicolon or a line break."""
    assert expression.interpolate("${ var x = inputs.n\n return x }", context) == 3
    assert expression.interpolate("${ var x = 1;; return x + 1 }", context) == 2
    assert (
        expression.interpolate("${ if (inputs.n > 1) { return 1 } return 2 }", context)
        == 1
    )


def test_restricted_parameter_references(context):
    """Check that only plain references are accepted without full JavaScript support."""
    assert expression.interpolate("$(inputs.list[0])", context, full_js=False) == 1
    with raises(UnsupportedExpression):
        expression.interpolate("$(inputs.n + 1)", context, full_js=False)
    with raises(UnsupportedExpression):
        expression.interpolate("${ return 1; }", context, full_js=False)


def test_get_dependencies():
    """Check that the inputs referenced by an expression are collected."""
    assert expression.get_dependencies(
        "$(inputs.a) and ${ return inputs['b'] + inputs.c.d + self.e; }"
    ) == {"a", "b", "c"}
    assert expression.get_dependencies("plain text") == set()
