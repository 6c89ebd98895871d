"""Tests for backend route detection."""

from __future__ import annotations

import textwrap

import pytest

from stampgraph.contracts import build_contract
from stampgraph.extractors import extract_source
from stampgraph.extractors.routes import join_paths, normalize_path, path_params
from stampgraph.models import ContractKind

EXPRESS_SOURCE = """
import express, { Request, Response } from 'express';

const router = express.Router();

function getUser(req: Request, res: Response): Promise<User> {
  return loadUser(req.params.id);
}

router.get('/users/:id', getUser);
router.post('/users', (req, res) => res.send('ok'));

export default router;
"""

NEST_SOURCE = """
import { Body, Controller, Get, Param, Post } from '@nestjs/common';

@Controller('users')
export class UsersController {
  @Get(':id')
  findOne(@Param('id') id: string): Promise<User> {
    return this.service.find(id);
  }

  @Post()
  create(@Body() dto: CreateUserDto): User {
    return this.service.create(dto);
  }
}
"""


def _extract(path: str, source: str):
    return extract_source(path, textwrap.dedent(source).lstrip("\n"))


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("", "/"), ("users", "/users"), ("//users//:id/", "/users/:id"), ("/", "/")],
)
def test_normalize_path(raw: str, expected: str) -> None:
    assert normalize_path(raw) == expected


def test_join_paths_and_params() -> None:
    assert join_paths("users", ":id") == "/users/:id"
    assert join_paths("", "health") == "/health"
    assert join_paths("/api", "/") == "/api"
    assert path_params("/orgs/:org/users/{userId}") == ("org", "userId")


def test_express_routes() -> None:
    fact = _extract("src/server/routes.ts", EXPRESS_SOURCE)

    assert fact.kind is ContractKind.API
    assert fact.backend is not None
    assert fact.backend.framework == "express"
    routes = [(route.method, route.path, route.handler) for route in fact.backend.routes]
    assert routes == [("GET", "/users/:id", "getUser"), ("POST", "/users", "anonymous")]
    assert fact.backend.routes[0].params == ("id",)
    assert fact.backend.language_specific["decorators"] == ["@router.get", "@router.post"]


def test_express_handler_signature() -> None:
    fact = _extract("src/server/routes.ts", EXPRESS_SOURCE)

    signature = fact.backend.routes[0].api_signature
    assert signature is not None
    assert signature.parameters == {"req": "Request", "res": "Response"}
    assert signature.return_type == "Promise<User>"
    assert signature.response_type == "User"


def test_nest_controller_routes() -> None:
    fact = _extract("src/users/users.controller.ts", NEST_SOURCE)

    assert fact.kind is ContractKind.API
    backend = fact.backend
    assert backend.framework == "nestjs"
    assert backend.controller == "UsersController"
    assert backend.base_path == "/users"
    routes = [(route.method, route.path, route.handler) for route in backend.routes]
    assert routes == [("GET", "/users/:id", "findOne"), ("POST", "/users", "create")]
    assert backend.language_specific["classes"] == ["UsersController"]
    assert backend.language_specific["methods"] == ["findOne", "create"]


def test_nest_contract_aggregates_api_signature() -> None:
    text = textwrap.dedent(NEST_SOURCE).lstrip("\n")
    fact = extract_source("src/users/users.controller.ts", text)

    contract = build_contract(fact, text).contract

    signature = contract.interface.api_signature
    assert signature["parameters"]["id"] == "string"
    assert signature["requestType"] == "CreateUserDto"
    assert signature["returnType"] == "Promise<User>"
    assert contract.description == "users.controller - nestjs API routes"
    assert contract.composition.language_specific["classes"] == ["UsersController"]


def test_non_backend_module_has_no_routes() -> None:
    fact = _extract("src/lib/math.ts", "export const add = (a: number, b: number) => a + b;\n")

    assert fact.backend is None
    assert fact.kind is ContractKind.MODULE
