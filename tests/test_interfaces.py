import abc
import unittest
from collections.abc import Iterable, Sized
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

import pytest

from typeinject import (
    MISSING,
    Ambiguity,
    AmbiguousResolutionError,
    Applicator,
    Injector,
    InjectorProtocol,
    Invoker,
    ResolutionError,
    TypeMapper,
)


class Stringer(Protocol):
    def string(self) -> str: ...


@runtime_checkable
class Greets(Protocol):
    def greet(self, name: str) -> str: ...


class Greeter:
    def __init__(self, name: str) -> None:
        self.name = name

    def string(self) -> str:
        return "Hello, My name is " + self.name


class FrenchGreeter:
    def greet(self, name: str) -> str:
        return "Bonjour " + name


class EnglishGreeter:
    def greet(self, name: str) -> str:
        return "Hello " + name


class RudeGreeter:
    # Wrong arity: does not conform to Greets
    def greet(self) -> str:
        return "What?"


class HasName(Protocol):
    name: str


@dataclass
class User:
    name: str


class Account:
    def __init__(self, name: str) -> None:
        self.name = name


class Lister(Protocol):
    def items(self) -> Iterable[str]: ...


class ListLister:
    def items(self) -> list[str]:
        return ["a"]


class MaybeName(Protocol):
    def name(self) -> Optional[str]: ...


class AlwaysName:
    def name(self) -> str:
        return "x"


class CountName:
    def name(self) -> int:
        return 1


class Storage(abc.ABC):
    @abc.abstractmethod
    def load(self) -> bytes: ...


class MemoryStorage(Storage):
    def load(self) -> bytes:
        return b""


class TestInterfaceFallback(unittest.TestCase):
    inj: Injector

    def setUp(self):
        self.inj = Injector()

    def test_mapped_concrete_value_resolves_its_protocol(self):
        g = Greeter("Jeremy")
        self.inj.map(g)

        assert self.inj.get(Stringer) is g

    def test_mapped_concrete_value_resolves_its_abc(self):
        storage = MemoryStorage()
        self.inj.map(storage)

        assert self.inj.get(Storage) is storage

    def test_builtin_value_resolves_collections_abc(self):
        self.inj.map("abc")
        assert self.inj.get(Sized) == "abc"

    def test_non_conforming_value_is_not_matched(self):
        self.inj.map(RudeGreeter())
        assert self.inj.get(Greets) is MISSING

    def test_exact_registration_beats_implementer(self):
        english = EnglishGreeter()
        french = FrenchGreeter()
        self.inj.map(english)
        self.inj.map_to(french, Greets)

        assert self.inj.get(Greets) is french

    def test_concrete_lookup_never_uses_interface_matching(self):
        class Base: ...

        class Derived(Base): ...

        self.inj.map(Derived())
        assert self.inj.get(Base) is MISSING

    def test_two_implementers_resolve_to_a_valid_one(self):
        self.inj.map(EnglishGreeter())
        self.inj.map(FrenchGreeter())

        greeter = self.inj.get(Greets)
        assert isinstance(greeter, (EnglishGreeter, FrenchGreeter))

    def test_two_implementers_first_registered_wins_by_default(self):
        english = EnglishGreeter()
        self.inj.map(english)
        self.inj.map(FrenchGreeter())

        assert self.inj.get(Greets) is english

    def test_overwriting_keeps_registration_position(self):
        self.inj.map(EnglishGreeter())
        self.inj.map(FrenchGreeter())
        replacement = EnglishGreeter()
        self.inj.map(replacement)

        assert self.inj.get(Greets) is replacement


class TestDataMemberConformance(unittest.TestCase):
    inj: Injector

    def setUp(self):
        self.inj = Injector()

    def test_dataclass_field_satisfies_protocol_attribute(self):
        u = User("x")
        self.inj.map(u)

        assert self.inj.get(HasName) is u

    def test_attribute_set_in_init_satisfies_protocol_attribute(self):
        account = Account("x")
        self.inj.map(account)

        assert self.inj.get(HasName) is account

    def test_missing_attribute_is_not_matched(self):
        self.inj.map(MemoryStorage())
        assert self.inj.get(HasName) is MISSING


class TestReturnTypeVariance(unittest.TestCase):
    inj: Injector

    def setUp(self):
        self.inj = Injector()

    def test_generic_subtype_return_matches(self):
        lister = ListLister()
        self.inj.map(lister)

        assert self.inj.get(Lister) is lister

    def test_narrowed_optional_return_matches(self):
        always = AlwaysName()
        self.inj.map(always)

        assert self.inj.get(MaybeName) is always

    def test_unrelated_return_type_is_not_matched(self):
        self.inj.map(CountName())
        assert self.inj.get(MaybeName) is MISSING


class TestAmbiguityError(unittest.TestCase):
    inj: Injector

    def setUp(self):
        self.inj = Injector(ambiguity=Ambiguity.ERROR)

    def test_two_implementers_raise(self):
        self.inj.map(EnglishGreeter())
        self.inj.map(FrenchGreeter())

        with pytest.raises(AmbiguousResolutionError) as ctx:
            self.inj.get(Greets)

        assert "EnglishGreeter" in str(ctx.value)
        assert "FrenchGreeter" in str(ctx.value)
        assert isinstance(ctx.value, ResolutionError)

    def test_single_implementer_resolves(self):
        french = FrenchGreeter()
        self.inj.map(french)

        assert self.inj.get(Greets) is french

    def test_exact_registration_is_never_ambiguous(self):
        self.inj.map(EnglishGreeter())
        self.inj.map(FrenchGreeter())
        chosen = FrenchGreeter()
        self.inj.map_to(chosen, Greets)

        assert self.inj.get(Greets) is chosen

    def test_contains_is_true_when_ambiguous(self):
        self.inj.map(EnglishGreeter())
        self.inj.map(FrenchGreeter())

        assert Greets in self.inj
        assert Storage not in self.inj


class TestNearestInjectorWins(unittest.TestCase):
    def test_local_implementer_beats_parent_exact_registration(self):
        parent = Injector()
        parent.map_to(EnglishGreeter(), Greets)
        child = parent.create_child()
        french = FrenchGreeter()
        child.map(french)

        assert child.get(Greets) is french

    def test_parent_implementer_is_found(self):
        parent = Injector()
        g = Greeter("Jeremy")
        parent.map(g)

        assert parent.create_child().get(Stringer) is g


class TestInjectorRoles(unittest.TestCase):
    def test_injector_satisfies_its_role_protocols(self):
        inj = Injector()
        inj.map(inj)

        assert inj.get(TypeMapper) is inj
        assert inj.get(Applicator) is inj
        assert inj.get(Invoker) is inj
        assert inj.get(InjectorProtocol) is inj

    def test_injector_is_instance_of_runtime_protocols(self):
        assert isinstance(Injector(), InjectorProtocol)
