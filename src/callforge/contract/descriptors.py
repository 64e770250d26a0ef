"""Explicit descriptions of contract classes.

The parser never looks at Python classes directly: ``describe`` turns a
decorated class into a ContractDescriptor first. Descriptors may also be
built by hand, which is how a static registration table feeds the parser.
"""

from __future__ import annotations

import inspect
import typing
from abc import ABC
from typing import Any, Generic, Protocol

from pydantic import Field

from callforge.contract.annotations import PARAMETER_MARKERS, declared_annotations
from callforge.contract.types import generic_bindings, strip_annotated
from callforge.errors import ContractError
from callforge.models.base import CallforgeBaseModel
from callforge.models.enums import OperationKind

# Bases that never contribute operations
_SKIPPED_BASES: tuple[Any, ...] = (object, ABC, Generic, Protocol)


class ParameterDescriptor(CallforgeBaseModel):
    """One positional parameter of an operation.

    Attributes:
        name: Python parameter name
        annotation: Declared type with ``Annotated`` stripped (Any if missing)
        markers: Binding markers found in the annotation
    """

    name: str
    annotation: Any = Field(default=Any)
    markers: tuple[Any, ...] = ()


class OperationDescriptor(CallforgeBaseModel):
    """One callable member of a contract."""

    name: str
    kind: OperationKind = OperationKind.REMOTE
    declaring_type: str = ""
    return_type: Any = Field(default=Any)
    parameters: tuple[ParameterDescriptor, ...] = ()
    annotations: tuple[Any, ...] = ()


class ContractDescriptor(CallforgeBaseModel):
    """A contract type: class-level bindings, parents and operations.

    Attributes:
        name: Simple type name, used as the config key prefix
        type_parameters: Names of the contract's own unbound TypeVars
        parents: Direct parent contracts
        annotations: Class-level binding markers
        operations: Operations in discovery order
        generic_bindings: TypeVar to concrete type, from parameterized parents
    """

    name: str
    type_parameters: tuple[str, ...] = ()
    parents: tuple[ContractDescriptor, ...] = ()
    annotations: tuple[Any, ...] = ()
    operations: tuple[OperationDescriptor, ...] = ()
    generic_bindings: dict[Any, Any] = Field(default_factory=dict)


ContractDescriptor.model_rebuild()


def _contract_bases(cls: type) -> list[type]:
    return [base for base in cls.__bases__ if base not in _SKIPPED_BASES]


def _classify(member: Any) -> tuple[OperationKind, Any] | None:
    if isinstance(member, (staticmethod, classmethod)):
        return OperationKind.STATIC, member.__func__
    if not inspect.isfunction(member):
        return None
    if declared_annotations(member) or getattr(member, "__isabstractmethod__", False):
        return OperationKind.REMOTE, member
    return OperationKind.DEFAULT, member


def describe_operation(owner: type, name: str, member: Any) -> OperationDescriptor | None:
    """Describe one class member, or None when it is not an operation."""
    classified = _classify(member)
    if classified is None:
        return None
    kind, func = classified
    if kind is OperationKind.STATIC:
        return OperationDescriptor(name=name, kind=kind, declaring_type=owner.__name__)

    try:
        hints = typing.get_type_hints(func, include_extras=True)
    except (NameError, TypeError) as exc:
        raise ContractError(
            f"Cannot resolve type hints of {owner.__name__}.{name}: {exc}",
            details={"operation": name},
        ) from exc

    parameters: list[ParameterDescriptor] = []
    signature = inspect.signature(func)
    for index, parameter in enumerate(signature.parameters.values()):
        if index == 0:
            continue  # self
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            raise ContractError(
                f"Variadic parameter *{parameter.name} unsupported on {owner.__name__}.{name}",
                details={"operation": name},
            )
        base, metadata = strip_annotated(hints.get(parameter.name, Any))
        markers = tuple(m for m in metadata if isinstance(m, PARAMETER_MARKERS))
        parameters.append(
            ParameterDescriptor(name=parameter.name, annotation=base, markers=markers)
        )

    return_type, _ = strip_annotated(hints.get("return", Any))
    return OperationDescriptor(
        name=name,
        kind=kind,
        declaring_type=owner.__name__,
        return_type=return_type,
        parameters=tuple(parameters),
        annotations=declared_annotations(func),
    )


def _own_operations(cls: type) -> list[OperationDescriptor]:
    operations: list[OperationDescriptor] = []
    for name, member in vars(cls).items():
        if name.startswith("_"):
            continue
        operation = describe_operation(cls, name, member)
        if operation is not None:
            operations.append(operation)
    return operations


def describe(cls: type) -> ContractDescriptor:
    """Build the descriptor of a decorated contract class.

    Operations declared on the class come first, followed by those
    inherited from parents and not redefined.

    Example:
        >>> from callforge.contract.annotations import request_line
        >>> class Status:
        ...     @request_line("GET /status")
        ...     def status(self) -> str: ...
        >>> [op.name for op in describe(Status).operations]
        ['status']
    """
    parents = tuple(describe(base) for base in _contract_bases(cls))

    operations = _own_operations(cls)
    seen = {op.name for op in operations}
    for parent in parents:
        for operation in parent.operations:
            if operation.name not in seen:
                seen.add(operation.name)
                operations.append(operation)

    return ContractDescriptor(
        name=cls.__name__,
        type_parameters=tuple(p.__name__ for p in getattr(cls, "__parameters__", ())),
        parents=parents,
        annotations=declared_annotations(cls),
        operations=tuple(operations),
        generic_bindings=generic_bindings(cls),
    )
