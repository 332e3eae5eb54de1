# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (C) 2024 Akshat Kotpalliwar

"""
Errors raised by the pointer reset registry
"""


class RegistryError(Exception):
    """Base class for registry misuse. Always a caller error."""


class InvalidIdentity(RegistryError, ValueError):
    """The identity is None or empty."""

    def __init__(self, identity=None):
        super().__init__(f"invalid identity: {identity!r}")
        self.identity = identity


class AlreadyRegistered(RegistryError, KeyError):
    """The identity already has a reset action."""

    def __init__(self, identity):
        super().__init__(f"identity already registered: {identity!r}")
        self.identity = identity

    def __str__(self):
        # KeyError quotes its argument
        return self.args[0]


class NotRegistered(RegistryError, KeyError):
    """The identity has no reset action to remove."""

    def __init__(self, identity):
        super().__init__(f"identity not registered: {identity!r}")
        self.identity = identity

    def __str__(self):
        return self.args[0]
