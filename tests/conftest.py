from __future__ import annotations

import os

import pytest

from zefiro.cwl.context import RuntimeContext
from zefiro.cwl.schema import Schema
from zefiro.cwl.values import Values


def get_data_path(name: str) -> str:
    return os.path.join(os.path.dirname(__file__), "data", name)


@pytest.fixture(scope="session")
def data_dir() -> str:
    return os.path.join(os.path.dirname(__file__), "data")


@pytest.fixture(scope="module")
def clt_schema() -> Schema:
    return Schema.from_path(get_data_path("clt-step-schema.cwl"))


@pytest.fixture(scope="module")
def clt_values() -> Values:
    return Values.from_path(get_data_path("clt-step-values.yml"))


@pytest.fixture(scope="module")
def wf_schema() -> Schema:
    return Schema.from_path(get_data_path("wf-step-schema.cwl"))


@pytest.fixture
def runtime_context(tmp_path) -> RuntimeContext:
    return RuntimeContext(
        outdir=str(tmp_path / "outdir"), tmpdir=str(tmp_path / "tmpdir")
    )
