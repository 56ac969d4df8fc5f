"""Pytest fixtures for depbuild tests."""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

MSBUILD_NS = "http://schemas.microsoft.com/developer/msbuild/2003"


def render_project(
    assembly=None,
    tfm=None,
    tfms=None,
    references=(),
    hint_paths=(),
    properties=None,
    namespace=False,
):
    """Render a minimal MSBuild project document."""
    props = []
    if assembly is not None:
        props.append(f"<AssemblyName>{assembly}</AssemblyName>")
    if tfm is not None:
        props.append(f"<TargetFramework>{tfm}</TargetFramework>")
    if tfms is not None:
        props.append(f"<TargetFrameworks>{tfms}</TargetFrameworks>")
    for name, value in (properties or {}).items():
        props.append(f"<{name}>{value}</{name}>")

    items = [f'<Reference Include="{r}" />' for r in references]
    for include, hint in hint_paths:
        items.append(f'<Reference Include="{include}"><HintPath>{hint}</HintPath></Reference>')

    xmlns = f' xmlns="{MSBUILD_NS}"' if namespace else ""
    return (
        f"<Project{xmlns}>\n"
        f"  <PropertyGroup>{''.join(props)}</PropertyGroup>\n"
        f"  <ItemGroup>{''.join(items)}</ItemGroup>\n"
        f"</Project>\n"
    )


@pytest.fixture
def make_project(tmp_path):
    """Write a project file under tmp_path and return its path.

    Usage:
        path = make_project("src/Lib/Lib.csproj", assembly="Lib", tfm="net8.0")
    """

    def _make(relative_path, **kwargs):
        path = tmp_path / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_project(**kwargs), encoding="utf-8")
        return path

    return _make
