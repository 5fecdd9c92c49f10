from __future__ import annotations

import io
import os

import pytest
from pytest import raises

from zefiro.core.exception import (
    InvalidType,
    MalformedDocument,
    MissingRequiredField,
    ParseError,
    UnknownClass,
    UnsupportedField,
    VersionMismatch,
)
from zefiro.cwl.binding import InputBinding
from zefiro.cwl.context import LoadingContext
from zefiro.cwl.requirement import (
    DockerRequirement,
    InlineJavascriptRequirement,
    UnknownRequirement,
)
from zefiro.cwl.schema import CommandLineTool, Schema, Workflow

TOOL = """
cwlVersion: v1.2
class: CommandLineTool
baseCommand: echo
inputs:
  message:
    type: string
    inputBinding:
      position: 1
outputs: []
"""


def _tool(body: str) -> str:
    return f"cwlVersion: v1.2\nclass: CommandLineTool\n{body}"


def test_load_clt(clt_schema):
    """Check that the example tool is loaded with its canonical structure."""
    tool = clt_schema.process
    assert isinstance(tool, CommandLineTool)
    assert tool.id == "step"
    assert [p.id for p in tool.inputs] == ["in_file", "out_file", "output_location_subdir"]
    assert tool.get_input("out_file").default == "output.txt"
    assert tool.get_input("in_file").input_binding == InputBinding(prefix="--in-file")
    assert tool.get_output("out_file").output_binding.glob == "$(inputs.out_file)"
    assert tool.get_requirement("DockerRequirement") == DockerRequirement(
        "step-image-uri:1.0"
    )
    assert clt_schema.full_js


def test_save_round_trip(clt_schema, wf_schema):
    """Check that saving and reloading a document yields an equal schema."""
    for schema in (clt_schema, wf_schema):
        saved = schema.save()
        assert next(iter(saved)) == "cwlVersion"
        assert Schema.from_yaml(saved) == schema
        assert Schema.from_string(schema.to_string()) == schema


def test_to_yaml(clt_schema):
    """Check that a schema can be written to a stream."""
    stream = io.StringIO()
    clt_schema.to_yaml(stream)
    assert "dockerPull: step-image-uri:1.0" in stream.getvalue()


def test_idmap_forms():
    """Check that list and mapping forms of `inputs` are equivalent."""
    as_map = Schema.from_string(TOOL)
    as_list = Schema.from_string(
        _tool(
            "baseCommand: [echo]\n"
            "inputs:\n"
            "  - id: '#message'\n"
            "    type: string\n"
            "    inputBinding: {position: 1}\n"
            "outputs: []\n"
        )
    )
    assert as_map == as_list
    shorthand = Schema.from_string(_tool("inputs:\n  message: string\noutputs: {}\n"))
    assert shorthand.process.get_input("message").type.save() == "string"


def test_default_id(data_dir):
    """Check that a document without an id takes its name from the file."""
    schema = Schema.from_path(os.path.join(data_dir, "wf-step-schema.cwl"))
    assert schema.process.id == "wf"
    assert Schema.from_string(TOOL).process.id is None


def test_missing_version():
    """Check that `cwlVersion` is required at the document root."""
    with raises(MissingRequiredField):
        Schema.from_string("class: CommandLineTool\ninputs: []\noutputs: []\n")


def test_version_mismatch():
    """Check that only CWL v1.2 documents are accepted."""
    with raises(VersionMismatch) as exc_info:
        Schema.from_string(TOOL.replace("v1.2", "v1.0"))
    assert exc_info.value.line is not None


def test_unknown_class():
    """Check that unknown document classes are rejected."""
    with raises(UnknownClass):
        Schema.from_string("cwlVersion: v1.2\nclass: ExpressionTool\n")


def test_unknown_requirement():
    """Check that unknown requirements are rejected unless the loader is tolerant."""
    document = TOOL + "requirements:\n  - class: MPIRequirement\n    processes: 2\n"
    with raises(UnknownClass):
        Schema.from_string(document)
    schema = Schema.from_string(document, LoadingContext(tolerant=True))
    requirement = schema.process.get_requirement("MPIRequirement")
    assert isinstance(requirement, UnknownRequirement)
    assert requirement.save() == {"class": "MPIRequirement", "processes": 2}


def test_unknown_hint():
    """Check that unknown hints never prevent a document from loading."""
    schema = Schema.from_string(
        TOOL + "hints:\n  SoftwareRequirement:\n    packages: [samtools]\n"
    )
    assert schema.process.has_requirement("SoftwareRequirement")
    assert not schema.full_js


def test_requirement_mapping():
    """Check that requirements can be expressed as a class-keyed mapping."""
    schema = Schema.from_string(
        TOOL
        + "requirements:\n"
        + "  InlineJavascriptRequirement: {}\n"
        + "  DockerRequirement:\n"
        + "    dockerPull: alpine\n"
    )
    assert schema.process.get_requirement(
        "InlineJavascriptRequirement"
    ) == InlineJavascriptRequirement()
    assert schema.process.get_requirement("DockerRequirement").docker_pull == "alpine"


def test_duplicate_requirement():
    """Check that a requirement class cannot be declared twice."""
    with raises(MalformedDocument):
        Schema.from_string(
            TOOL
            + "requirements:\n"
            + "  - class: DockerRequirement\n    dockerPull: a\n"
            + "  - class: DockerRequirement\n    dockerPull: b\n"
        )


@pytest.mark.parametrize(
    "field", ["stdout: out.txt", "successCodes: [0]", "foo: bar"]
)
def test_unsupported_field(field):
    """Check that unsupported or unknown tool fields are rejected."""
    with raises(UnsupportedField):
        Schema.from_string(TOOL + field + "\n")


def test_extension_field():
    """Check that namespaced extension fields are ignored."""
    schema = Schema.from_string(TOOL + "s:author: someone\n")
    assert schema.process.base_command == ["echo"]


def test_invalid_type():
    """Check that an unknown parameter type is reported with its position."""
    with raises(InvalidType) as exc_info:
        Schema.from_string(_tool("inputs:\n  x:\n    type: Any\noutputs: []\n"))
    assert exc_info.value.line == 4


def test_missing_type():
    """Check that parameters require a type."""
    with raises(MissingRequiredField):
        Schema.from_string(_tool("inputs:\n  - id: x\noutputs: []\n"))


def test_duplicate_input():
    """Check that parameter ids must be unique."""
    with raises(MalformedDocument):
        Schema.from_string(
            _tool(
                "inputs:\n"
                "  - {id: x, type: string}\n"
                "  - {id: '#x', type: int}\n"
                "outputs: []\n"
            )
        )


def test_default_type_mismatch():
    """Check that defaults must match the declared type."""
    with raises(MalformedDocument):
        Schema.from_string(
            _tool("inputs:\n  x:\n    type: int\n    default: abc\noutputs: []\n")
        )


def test_undeclared_expression_input():
    """Check that expressions can only refer to declared inputs."""
    with raises(MalformedDocument) as exc_info:
        Schema.from_string(
            _tool(
                "arguments: [$(inputs.missing)]\n"
                "inputs:\n  x: string\n"
                "outputs: []\n"
            )
        )
    assert "missing" in str(exc_info.value)


def test_malformed_expression():
    """Check that unparsable expressions are reported while loading."""
    with raises(MalformedDocument):
        Schema.from_string(
            _tool(
                "inputs:\n"
                "  x:\n"
                "    type: string\n"
                "    inputBinding:\n"
                "      valueFrom: $(inputs.)\n"
                "outputs: []\n"
            )
        )


def test_argument_binding():
    """Check that argument bindings require `valueFrom`."""
    schema = Schema.from_string(
        _tool(
            "arguments:\n"
            "  - -v\n"
            "  - {position: 2, prefix: -o, valueFrom: $(inputs.x)}\n"
            "inputs:\n  x: string\n"
            "outputs: []\n"
        )
    )
    assert schema.process.arguments == [
        "-v",
        InputBinding(position=2, prefix="-o", value_from="$(inputs.x)"),
    ]
    with raises(MissingRequiredField):
        Schema.from_string(_tool("arguments:\n  - {position: 1}\ninputs: []\noutputs: []\n"))


def test_invalid_yaml():
    """Check that YAML syntax errors are reported as parse errors."""
    with raises(ParseError) as exc_info:
        Schema.from_string("cwlVersion: v1.2\nclass: [CommandLineTool\n")
    assert exc_info.value.line is not None


def test_missing_file(tmp_path):
    """Check that unreadable documents raise a parse error."""
    with raises(ParseError):
        Schema.from_path(str(tmp_path / "missing.cwl"))


def test_load_workflow(wf_schema):
    """Check the structure of the example workflow."""
    workflow = wf_schema.process
    assert isinstance(workflow, Workflow)
    assert [s.id for s in workflow.steps] == ["first", "second"]
    second = workflow.get_step("second")
    assert second.when == "$(inputs.skip !== true)"
    assert {i.id: i.source for i in second.in_} == {
        "in_file": "first/out_file",
        "out_file": "first/out_file",
        "skip": "skip_second",
    }
    assert workflow.get_output("final").output_source == "second/out_file"


def test_step_tool_inherits_requirements(wf_schema):
    """Check that step tools inherit the workflow requirements they do not override."""
    tool = wf_schema.get_step_tool("first")
    assert isinstance(tool.process, CommandLineTool)
    assert tool.full_js
    assert tool.process.get_requirement("DockerRequirement").docker_pull == "alpine:3.19"
    inline = wf_schema.process.get_step("first").run
    assert "InlineJavascriptRequirement" not in inline.requirements
    with raises(MalformedDocument):
        wf_schema.get_step_tool("third")


def test_step_tool_from_file(tmp_path):
    """Check that a step can refer to a tool stored in another file."""
    (tmp_path / "echo.cwl").write_text(TOOL)
    (tmp_path / "main.cwl").write_text(
        "cwlVersion: v1.2\n"
        "class: Workflow\n"
        "inputs:\n  message: string\n"
        "outputs: []\n"
        "steps:\n"
        "  say:\n"
        "    run: echo.cwl\n"
        "    in:\n      message: message\n"
        "    out: []\n"
    )
    schema = Schema.from_path(str(tmp_path / "main.cwl"))
    tool = schema.get_step_tool("say")
    assert tool.process.id == "echo"
    assert tool.process.base_command == ["echo"]


@pytest.mark.parametrize(
    "step_in,step_out",
    [("{bogus: message}", "[]"), ("{message: message}", "[nope]")],
)
def test_step_tool_from_file_undeclared_ids(tmp_path, step_in, step_out):
    """Check that step ids must be declared by a tool stored in another file."""
    (tmp_path / "echo.cwl").write_text(TOOL)
    (tmp_path / "main.cwl").write_text(
        "cwlVersion: v1.2\n"
        "class: Workflow\n"
        "inputs:\n  message: string\n"
        "outputs: []\n"
        "steps:\n"
        "  say:\n"
        "    run: echo.cwl\n"
        f"    in: {step_in}\n"
        f"    out: {step_out}\n"
    )
    schema = Schema.from_path(str(tmp_path / "main.cwl"))
    with raises(MalformedDocument):
        schema.get_step_tool("say")


def test_undeclared_source():
    """Check that step sources must refer to declared inputs or step outputs."""
    workflow = (
        "cwlVersion: v1.2\n"
        "class: Workflow\n"
        "inputs:\n  message: string\n"
        "outputs: []\n"
        "steps:\n"
        "  say:\n"
        "    run: echo.cwl\n"
        "    in:\n      message: {source}\n"
        "    out: []\n"
    )
    Schema.from_string(workflow.format(source="message"))
    for source in ("other", "missing/out", "say/out"):
        with raises(MalformedDocument):
            Schema.from_string(workflow.format(source=source))


def test_step_undeclared_input(wf_schema):
    """Check that step inputs must be declared by an inline tool."""
    document = wf_schema.save()
    document["steps"][0]["in"].append({"id": "extra", "source": "input"})
    with raises(MalformedDocument):
        Schema.from_yaml(document)


def test_inline_workflow():
    """Check that nested inline workflows are rejected."""
    with raises(UnsupportedField):
        Schema.from_string(
            "cwlVersion: v1.2\n"
            "class: Workflow\n"
            "inputs: []\n"
            "outputs: []\n"
            "steps:\n"
            "  nested:\n"
            "    run:\n"
            "      class: Workflow\n"
            "      inputs: []\n"
            "      outputs: []\n"
            "      steps: []\n"
            "    in: []\n"
            "    out: []\n"
        )
