from __future__ import annotations

from pathlib import Path

import pytest
from pytest import raises

from zefiro.core.exception import (
    GlobNoMatch,
    MissingRequiredInput,
    ResolutionError,
    TypeMismatch,
)
from zefiro.cwl.listing import LocalListingProvider, StaticListingProvider
from zefiro.cwl.resolver import (
    ResolvedInvocation,
    bind_inputs,
    build_step_values,
    collect_outputs,
    resolve,
)
from zefiro.cwl.schema import Schema
from zefiro.cwl.values import Values

TOOL = """
cwlVersion: v1.2
class: CommandLineTool
baseCommand: wc
inputs:
  count:
    type: int
    inputBinding: {prefix: -n}
  label:
    type: string?
  sample:
    type: string
    default: s1
outputs:
  reports:
    type: File[]
    outputBinding:
      glob: ["*.txt", "logs/**/*.log"]
  summary:
    type: File?
    outputBinding:
      glob: summary.json
      loadContents: true
  sample:
    type: string
  outdir:
    type: string
"""

UPSTREAM = {
    "first": {
        "out_file": {"class": "File", "location": "first.txt", "basename": "first.txt"}
    }
}


def test_resolve_example(clt_schema, clt_values, runtime_context):
    """Check the full resolution of the example tool against an injected listing."""
    invocation = resolve(
        clt_schema,
        clt_values,
        runtime_context,
        StaticListingProvider(["output.txt", "other.log"]),
    )
    assert invocation.argv == [
        "--in-file",
        "s3://bucket/input.txt",
        "--out-file",
        "output.txt",
    ]
    out_file = invocation.outputs["out_file"]
    assert out_file["class"] == "File"
    assert out_file["location"] == "output/output.txt"
    assert invocation.to_dict()["outputs"]["out_file"]["location"] == "output/output.txt"


def test_resolve_without_listing(clt_schema, clt_values):
    """Check that outputs are left empty when no listing is injected."""
    invocation = resolve(clt_schema, clt_values)
    assert invocation == ResolvedInvocation(
        argv=["--in-file", "s3://bucket/input.txt", "--out-file", "output.txt"],
        outputs={},
    )


def test_resolve_default_runtime(clt_schema, clt_values, monkeypatch, tmp_path):
    """Check that resolution without a runtime context ignores the working directory."""
    listing = StaticListingProvider(["/var/spool/cwl/output.txt"])
    results = []
    for cwd in (tmp_path, Path("/")):
        monkeypatch.chdir(cwd)
        results.append(resolve(clt_schema, clt_values, None, listing))
    assert results[0] == results[1]
    out_file = results[0].outputs["out_file"]
    assert out_file["location"] == "output//var/spool/cwl/output.txt"
    assert out_file["basename"] == "output.txt"


def test_glob_no_match(clt_schema, clt_values, runtime_context):
    """Check that a required single File output fails on an empty listing."""
    with raises(GlobNoMatch):
        resolve(clt_schema, clt_values, runtime_context, StaticListingProvider([]))


def test_missing_required_input(clt_schema):
    """Check that required inputs without defaults must be provided."""
    with raises(MissingRequiredInput):
        resolve(clt_schema, Values({"out_file": "x.txt"}))


def test_type_mismatch(clt_schema):
    """Check that values must match the declared input types."""
    with raises(TypeMismatch):
        resolve(clt_schema, Values({"in_file": "not-a-file"}))
    with raises(TypeMismatch):
        bind_inputs(Schema.from_string(TOOL), {"count": 2**31})


def test_bind_inputs_defaults():
    """Check that defaults fill absent inputs and optional inputs become null."""
    inputs = bind_inputs(Schema.from_string(TOOL), {"count": 3, "extra": 1})
    assert inputs == {"count": 3, "label": None, "sample": "s1"}


def test_collect_outputs(runtime_context):
    """Check glob ordering, loadContents and pass-through outputs."""
    schema = Schema.from_string(TOOL)
    inputs = bind_inputs(schema, {"count": 1})
    outputs = collect_outputs(
        schema,
        inputs,
        StaticListingProvider(
            [
                "b.txt",
                "a.txt",
                "logs/",
                "logs/run/1.log",
                "logs/2.log",
                "data.csv",
                {"class": "File", "location": "summary.json", "contents": "{}"},
            ]
        ),
        runtime_context,
    )
    assert [r["location"] for r in outputs["reports"]] == [
        "a.txt",
        "b.txt",
        "logs/2.log",
        "logs/run/1.log",
    ]
    assert outputs["summary"]["contents"] == "{}"
    assert outputs["sample"] == "s1"
    assert outputs["outdir"] == runtime_context.outdir


def test_optional_output_no_match(runtime_context):
    """Check that optional outputs resolve to null when nothing matches."""
    schema = Schema.from_string(TOOL)
    outputs = collect_outputs(
        schema,
        bind_inputs(schema, {"count": 1}),
        StaticListingProvider(["a.txt"]),
        runtime_context,
    )
    assert outputs["summary"] is None


def test_local_listing(runtime_context):
    """Check output collection from a real output directory."""
    schema = Schema.from_string(TOOL)
    logs = Path(runtime_context.outdir) / "logs"
    logs.mkdir(parents=True)
    (logs / "x.log").write_text("log")
    (logs.parent / "a.txt").write_text("a")
    (logs.parent / "summary.json").write_text('{"lines": 1}')
    outputs = collect_outputs(
        schema,
        bind_inputs(schema, {"count": 1}),
        LocalListingProvider(),
        runtime_context,
    )
    assert [r["basename"] for r in outputs["reports"]] == ["a.txt", "x.log"]
    assert outputs["reports"][0]["size"] == 1
    assert outputs["summary"]["contents"] == '{"lines": 1}'


def test_single_file_many_matches(runtime_context):
    """Check that a single File output cannot match several entries."""
    schema = Schema.from_string(
        "cwlVersion: v1.2\n"
        "class: CommandLineTool\n"
        "inputs: []\n"
        "outputs:\n"
        "  out:\n"
        "    type: File\n"
        "    outputBinding: {glob: '*.txt'}\n"
    )
    with raises(TypeMismatch):
        resolve(schema, {}, runtime_context, StaticListingProvider(["a.txt", "b.txt"]))


def test_resolve_workflow(wf_schema):
    """Check that only CommandLineTool documents can be resolved directly."""
    with raises(ResolutionError):
        resolve(wf_schema, {})


@pytest.fixture
def wf_values() -> Values:
    return Values.from_yaml(
        {"input": {"class": "File", "location": "s3://bucket/reads.txt"}}
    )


def test_step_values(wf_schema, wf_values):
    """Check step values built from workflow inputs and upstream outputs."""
    first = build_step_values(wf_schema, "first", wf_values)
    assert first["in_file"]["location"] == "s3://bucket/reads.txt"
    assert "out_file" not in first
    second = build_step_values(wf_schema, "second", wf_values, UPSTREAM)
    assert second["in_file"]["location"] == "first.txt"
    assert second["out_file"] == "first.txt.gz"
    assert second["skip"] is None


def test_step_values_resolution(wf_schema, wf_values, runtime_context):
    """Check that step values resolve against the step tool."""
    tool = wf_schema.get_step_tool("first")
    invocation = resolve(
        tool, build_step_values(wf_schema, "first", wf_values), runtime_context
    )
    assert invocation.argv == ["cp", "s3://bucket/reads.txt", "first.txt"]


def test_step_skipped(wf_schema, wf_values):
    """Check that a false `when` condition skips the step."""
    values = Values({**wf_values.save(), "skip_second": True})
    assert build_step_values(wf_schema, "second", values, UPSTREAM) is None


def test_step_errors(wf_schema, wf_values, clt_schema):
    """Check the errors raised while building step values."""
    with raises(ResolutionError):
        build_step_values(wf_schema, "missing", wf_values)
    with raises(ResolutionError):
        build_step_values(clt_schema, "first", wf_values)
    with raises(MissingRequiredInput):
        build_step_values(wf_schema, "first", {})
