"""Authenticated callers.

One identity table backs two login realms. A successful login yields the
principal of the realm it was made in; routes ask for the principal type
they serve instead of checking ``user.role`` themselves.
"""
from dataclasses import dataclass
from typing import Union, assert_never

from taskboard.models.enums import UserRole
from taskboard.models.user import User


@dataclass(frozen=True)
class AdminPrincipal:
    user: User

    realm = UserRole.ADMIN


@dataclass(frozen=True)
class PublicPrincipal:
    user: User

    realm = UserRole.USER


Principal = Union[AdminPrincipal, PublicPrincipal]


def principal_for(user: User) -> Principal:
    match user.role:
        case UserRole.ADMIN:
            return AdminPrincipal(user)
        case UserRole.USER:
            return PublicPrincipal(user)
        case _:
            assert_never(user.role)
