from __future__ import annotations

import json
from pathlib import Path

import pytest

from domain.chain import RequestSpec, VariableExtraction
from infrastructure.chain import ChainLoaderRegistry, ChainLoadError, JsonChainLoader, YamlChainLoader

YAML_CHAIN = """
name: login flow
steps:
  - order: 1
    name: profile
    request:
      method: get
      url: /users/{{userId}}
      headers:
        Authorization: Bearer {{token}}
  - order: 0
    name: login
    request:
      method: POST
      url: /login
      body: '{"user": "alice"}'
    variableExtractions:
      - token
      - name: userId
        path: $.user.id
    delay: 100
"""


def test_yaml_loader_parses_steps(tmp_path: Path) -> None:
    path = tmp_path / "login.yaml"
    path.write_text(YAML_CHAIN, encoding="utf-8")

    chain = YamlChainLoader().load_from_file(path)

    assert chain.id
    assert chain.name == "login flow"
    login, profile = chain.steps
    assert (login.name, login.order, profile.order) == ("login", 0, 1)
    assert login.id and profile.id and login.id != profile.id
    assert login.request.body == '{"user": "alice"}'
    assert login.delay == 100
    assert login.variable_extractions == [
        VariableExtraction(name="token", path="$.token"),
        VariableExtraction(name="userId", path="$.user.id"),
    ]
    assert profile.request == RequestSpec(
        method="GET",
        url="/users/{{userId}}",
        headers={"Authorization": "Bearer {{token}}"},
    )


def test_yaml_loader_mapping_body_is_json(tmp_path: Path) -> None:
    path = tmp_path / "signup.yaml"
    path.write_text(
        """
name: signup
steps:
  - request:
      method: POST
      url: /users
      body:
        user: alice
        admin: false
        tags: [a, b]
""",
        encoding="utf-8",
    )

    chain = YamlChainLoader().load_from_file(path)

    body = chain.steps[0].request.body
    assert json.loads(body) == {"user": "alice", "admin": False, "tags": ["a", "b"]}


def test_json_loader_keeps_given_ids(tmp_path: Path) -> None:
    path = tmp_path / "chain.json"
    path.write_text(
        json.dumps(
            {
                "id": "chain-1",
                "name": "json chain",
                "steps": [{"id": "s1", "order": 0, "requestId": "r1", "continueOnError": True}],
            }
        ),
        encoding="utf-8",
    )

    chain = JsonChainLoader().load_from_file(path)

    assert chain.id == "chain-1"
    assert chain.steps[0].id == "s1"
    assert chain.steps[0].request_id == "r1"
    assert chain.steps[0].continue_on_error is True


@pytest.mark.parametrize(
    "filename,content",
    [
        ("empty.yaml", ""),
        ("list.yaml", "- a\n- b\n"),
        ("broken.json", "{not json"),
        ("broken.yaml", "name: [unclosed"),
        ("noname.json", '{"steps": []}'),
        ("baddelay.json", '{"name": "x", "steps": [{"delay": -1}]}'),
    ],
)
def test_loader_rejects_invalid_files(tmp_path: Path, filename: str, content: str) -> None:
    path = tmp_path / filename
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ChainLoadError):
        ChainLoaderRegistry().get_loader(path).load_from_file(path)


def test_loader_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ChainLoadError):
        JsonChainLoader().load_from_file(tmp_path / "missing.json")


def test_registry_selects_loader_by_suffix() -> None:
    registry = ChainLoaderRegistry()

    assert isinstance(registry.get_loader(Path("a.json")), JsonChainLoader)
    assert isinstance(registry.get_loader(Path("a.YAML")), YamlChainLoader)
    assert isinstance(registry.get_loader(Path("a.yml")), YamlChainLoader)
    with pytest.raises(ChainLoadError):
        registry.get_loader(Path("a.toml"))
