"""
Unit tests for invite code issuing.
"""

import re

from models.class_model import ClassModel
from utils.class_manager import ClassManager
from utils.invite_code import InviteCodeIssuer

CODE_PATTERN = re.compile(r"^[A-Z0-9]{8}$")


def _scripted_draws(monkeypatch, codes):
    draws = iter(codes)
    monkeypatch.setattr(InviteCodeIssuer, "_draw", lambda self: next(draws))


def test_generated_code_shape(test_db):
    code = InviteCodeIssuer(test_db).generate()
    assert CODE_PATTERN.match(code)


def test_created_class_gets_valid_code(make_class):
    class_model = make_class()
    assert CODE_PATTERN.match(class_model.invite_code)


def test_generate_skips_existing_codes(test_db, make_class, monkeypatch):
    _scripted_draws(monkeypatch, ["TAKEN001"])
    make_class("First")

    _scripted_draws(monkeypatch, ["TAKEN001", "TAKEN001", "FRESH002"])
    assert InviteCodeIssuer(test_db).generate() == "FRESH002"


def test_issue_retries_when_code_is_claimed_concurrently(test_db, make_class, owner, monkeypatch):
    _scripted_draws(monkeypatch, ["RACE0001"])
    make_class("First")

    # Pretend the existence check ran before the other insert landed
    monkeypatch.setattr(InviteCodeIssuer, "_exists", lambda self, code: False)
    _scripted_draws(monkeypatch, ["RACE0001", "CLEAN002"])

    class_model = ClassManager(test_db).create_class(owner.id, "Second")

    assert class_model.invite_code == "CLEAN002"
    assert test_db.query(ClassModel).count() == 2


def test_codes_are_unique_across_classes(make_class):
    codes = {make_class(f"Class {i}").invite_code for i in range(20)}
    assert len(codes) == 20
