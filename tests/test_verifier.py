"""
Tests for the trace verifier.

Each failure kind is exercised against a one-trace program, mirroring how a
specification author sees divergences: which trace, which step, what was
expected and what happened instead.
"""

import pytest

from dospec import (
    ArgumentMismatchError,
    EffectNameMismatchError,
    Err,
    MissingTerminationError,
    Ok,
    PrematureTerminationError,
    ReturnValueMismatchError,
    TerminalKindMismatchError,
    ThrownErrorMismatchError,
    UndeclaredEffectError,
    VerificationError,
    Verifier,
    check,
    declare,
    implementation,
    procedure,
    program,
    returns,
    throws,
    trace,
    verify,
    yields,
)

effect = declare("effect")

RETURNING = program([trace([yields(effect.takes(1).returns("string")), returns("string")])])
THROWING = program([trace([yields(effect.takes(1).returns("string")), throws(ValueError("error"))])])


class TestRandomNumberScenario:
    def test_returning_trace(self, random_effect):
        spec = program([trace([yields(random_effect.takes().returns(42)), returns(42)])])

        @implementation(spec)
        def io(fx):
            return (yield fx.random())

        verify(spec, io)

    def test_injected_error_reraised_passes(self, random_program):
        @implementation(random_program)
        def io(fx):
            return (yield fx.random())

        verify(random_program, io)

    def test_error_value_inspected_and_reraised_passes(self, random_effect):
        error = ValueError("random error")
        spec = program(
            [
                trace([yields(random_effect.takes().returns(42)), returns(42)]),
                trace([yields(random_effect.takes().returns(error)), throws(ValueError("random error"))]),
            ]
        )

        @implementation(spec)
        def io(fx):
            result = yield fx.random()
            if isinstance(result, Exception):
                raise result
            return result

        verify(spec, io)

    def test_returning_the_error_instead_of_raising_fails(self, random_effect):
        spec = program(
            [
                trace(
                    [
                        yields(random_effect.takes().returns(ValueError("random error"))),
                        throws(ValueError("random error")),
                    ]
                )
            ]
        )

        @implementation(spec)
        def io(fx):
            return (yield fx.random())

        with pytest.raises(TerminalKindMismatchError, match="expected to throw but didn't"):
            verify(spec, io)


class TestReturningTrace:
    def test_correct_implementation(self):
        verify(RETURNING, implementation(RETURNING, lambda fx: (yield fx.effect(1))))

    def test_wrong_return_value(self):
        def io(fx):
            yield fx.effect(1)

        with pytest.raises(ReturnValueMismatchError, match="expected 'string' but got None"):
            verify(RETURNING, implementation(RETURNING, io))

    def test_extra_effect_after_last_step(self):
        def io(fx):
            yield fx.effect(1)
            yield fx.effect(1)

        with pytest.raises(MissingTerminationError, match="expected to return but didn't") as info:
            verify(RETURNING, implementation(RETURNING, io))
        assert info.value.trace_index == 0
        assert info.value.step_index == 1

    def test_returning_before_any_effect(self):
        def io(fx):
            return "string"
            yield  # pragma: no cover

        with pytest.raises(PrematureTerminationError, match="expected to yield but returned") as info:
            verify(RETURNING, implementation(RETURNING, io))
        assert info.value.step_index == 0

    def test_wrong_effect_name(self):
        def io(fx):
            yield fx.wrongEffect()

        with pytest.raises(EffectNameMismatchError, match=r"expected effect but got 'wrongEffect' \(expected 'effect'\)"):
            verify(RETURNING, implementation(RETURNING, io))

    def test_undeclared_effect_name_is_reported_as_such(self):
        def io(fx):
            yield fx.wrongEffect()

        with pytest.raises(UndeclaredEffectError) as info:
            verify(RETURNING, implementation(RETURNING, io))
        assert info.value.expected == "effect"
        assert info.value.actual == "wrongEffect"
        assert info.value.declared == frozenset({"effect"})

    def test_undeclared_effect_after_the_last_step(self):
        def io(fx):
            yield fx.effect(1)
            yield fx.sql("select")

        (report,) = check(RETURNING, implementation(RETURNING, io))

        assert isinstance(report.error, UndeclaredEffectError)
        assert report.error.expected is None
        assert report.error.step_index == 1
        assert "effect 'sql' is not declared by the program" in str(report.error)

    def test_declared_but_misplaced_effect_is_a_plain_name_mismatch(self):
        other = declare("other")
        spec = program(
            [
                trace([yields(effect.takes(1).returns(None)), returns(None)]),
                trace([yields(other.takes().returns(None)), returns(None)]),
            ]
        )

        def io():
            yield other()

        with pytest.raises(EffectNameMismatchError) as info:
            verify(spec, io)
        assert not isinstance(info.value, UndeclaredEffectError)
        assert info.value.trace_index == 0

    def test_wrong_argument(self):
        def io(fx):
            yield fx.effect("string")

        with pytest.raises(ArgumentMismatchError, match=r"expected \[1\] but got \['string'\]"):
            verify(RETURNING, implementation(RETURNING, io))

    def test_empty_list_argument_never_matches_scalar(self):
        def io(fx):
            yield fx.effect([])

        with pytest.raises(ArgumentMismatchError, match=r"expected \[1\] but got \[\[\]\]"):
            verify(RETURNING, implementation(RETURNING, io))

    def test_raising_instead_of_returning(self):
        def io(fx):
            yield fx.effect(1)
            raise ValueError("error")

        with pytest.raises(TerminalKindMismatchError, match="expected to return but didn't") as info:
            verify(RETURNING, implementation(RETURNING, io))
        assert isinstance(info.value.__cause__, ValueError)

    def test_deep_return_value_mismatch(self):
        spec = program([trace([yields(effect.takes(1).returns({"a": 1})), returns({"a": 1})])])

        verify(spec, implementation(spec, lambda fx: (yield fx.effect(1))))

        def io(fx):
            yield fx.effect(1)
            return {"a": 2}

        with pytest.raises(ReturnValueMismatchError, match=r"expected \{'a': 1\} but got \{'a': 2\}"):
            verify(spec, implementation(spec, io))


class TestThrowingTrace:
    def test_correct_implementation(self):
        def io(fx):
            yield fx.effect(1)
            raise ValueError("error")

        verify(THROWING, implementation(THROWING, io))

    def test_returning_instead_of_throwing(self):
        def io(fx):
            yield fx.effect(1)

        with pytest.raises(TerminalKindMismatchError, match="expected to throw but didn't"):
            verify(THROWING, implementation(THROWING, io))

    def test_extra_effect_instead_of_throwing(self):
        def io(fx):
            yield fx.effect(1)
            yield fx.effect(1)

        with pytest.raises(MissingTerminationError, match="expected to throw but didn't"):
            verify(THROWING, implementation(THROWING, io))

    def test_returning_before_any_effect(self):
        def io(fx):
            return None
            yield  # pragma: no cover

        with pytest.raises(PrematureTerminationError, match="expected to yield but returned"):
            verify(THROWING, implementation(THROWING, io))

    def test_throwing_before_any_effect(self):
        def io(fx):
            raise ValueError("error")
            yield  # pragma: no cover

        with pytest.raises(PrematureTerminationError, match="expected to yield but threw"):
            verify(THROWING, implementation(THROWING, io))

    def test_different_error_message(self):
        def io(fx):
            yield fx.effect(1)
            raise ValueError("other")

        with pytest.raises(
            ThrownErrorMismatchError,
            match=r"expected ValueError\('error'\) but got ValueError\('other'\)",
        ):
            verify(THROWING, implementation(THROWING, io))

    def test_different_error_type(self):
        def io(fx):
            yield fx.effect(1)
            raise RuntimeError("error")

        with pytest.raises(ThrownErrorMismatchError):
            verify(THROWING, implementation(THROWING, io))

    def test_same_error_instance_matches(self):
        error = KeyError("missing")
        spec = program([trace([throws(error)])])

        def io():
            raise error
            yield  # pragma: no cover

        verify(spec, io)


class TestStructuralMatching:
    def test_not_influenced_by_empty_sequences(self):
        spec = program(
            [
                trace(
                    [
                        yields(effect.takes([]).returns(None)),
                        yields(effect.takes([{"a": 1}]).returns(None)),
                        returns(None),
                    ]
                )
            ]
        )

        def io(fx):
            yield fx.effect([])
            yield fx.effect([{"a": 1}])

        verify(spec, implementation(spec, io))

    def test_polymorphic_effects(self):
        spec = program(
            [
                trace(
                    [
                        yields(effect.takes({"id": 1}).returns(1)),
                        yields(effect.takes([{"id": 1}]).returns("done")),
                        returns((1, "done")),
                    ]
                )
            ]
        )

        def io(fx):
            first = yield fx.effect({"id": 1})
            second = yield fx.effect([{"id": 1}])
            return first, second

        verify(spec, implementation(spec, io))

    def test_no_arguments_never_match_an_empty_list(self):
        spec = program([trace([yields(effect.takes([]).returns(None)), returns(None)])])

        def io(fx):
            yield fx.effect()

        with pytest.raises(ArgumentMismatchError, match=r"expected \[\[\]\] but got \[\]"):
            verify(spec, implementation(spec, io))

    def test_name_mismatch_is_reported_before_argument_mismatch(self):
        other = declare("other")
        spec = program(
            [
                trace([yields(effect.takes(1).returns(None)), returns(None)]),
                trace([yields(other.takes(2).returns(None)), returns(None)]),
            ]
        )

        def io():
            yield other(3)

        with pytest.raises(EffectNameMismatchError):
            verify(spec, io)


class TestScriptedStepErrors:
    def test_thrown_step_is_injected_at_the_suspension_point(self):
        spec = program(
            [
                trace(
                    [
                        yields(effect.takes(1).throws(TimeoutError("slow"))),
                        yields(effect.takes(2).returns("ok")),
                        returns("ok"),
                    ]
                )
            ]
        )

        @procedure
        def retrying():
            try:
                return (yield effect(1))
            except TimeoutError:
                return (yield effect(2))

        verify(spec, retrying())

    def test_unhandled_injected_error_must_match_terminal(self):
        spec = program(
            [
                trace(
                    [
                        yields(effect.takes(1).throws(TimeoutError("slow"))),
                        throws(TimeoutError("slow")),
                    ]
                )
            ]
        )

        @procedure
        def naive():
            return (yield effect(1))

        verify(spec, naive())

    def test_scripted_error_is_copied_for_each_run(self):
        error = TimeoutError("slow")
        spec = program(
            [trace([yields(effect.takes(1).throws(error)), throws(TimeoutError("slow"))])]
        )
        seen = []

        def io():
            try:
                yield effect(1)
            except TimeoutError as exc:
                seen.append(getattr(exc, "attempts", 0))
                exc.attempts = 1
                raise

        verify(spec, io)
        verify(spec, io)

        assert seen == [0, 0]
        assert not hasattr(error, "attempts")
        assert error.__traceback__ is None


class TestIsolation:
    def test_each_trace_gets_a_fresh_run(self):
        load = declare("load")
        shared_step = load.takes().returns([1])
        spec = program(
            [
                trace([yields(shared_step), returns([1, "seen"])]),
                trace([yields(shared_step), returns([1, "seen"])]),
            ]
        )

        def io():
            items = yield load()
            items.append("seen")
            return items

        verify(spec, io)
        verify(spec, io)

    def test_verifying_twice_gives_identical_reports(self, random_program):
        @implementation(random_program)
        def io(fx):
            return (yield fx.random())

        first = [(r.index, r.passed) for r in check(random_program, io)]
        second = [(r.index, r.passed) for r in check(random_program, io)]

        assert first == second == [(0, True), (1, True)]

    def test_one_failing_trace_does_not_affect_another(self, random_effect):
        spec = program(
            [
                trace([yields(random_effect.takes().returns(1)), returns(2)]),
                trace([yields(random_effect.takes().returns(5)), returns(5)]),
            ]
        )

        def io():
            return (yield random_effect())

        reports = check(spec, io)

        assert isinstance(reports[0].result, Err)
        assert isinstance(reports[0].error, ReturnValueMismatchError)
        assert reports[1].result == Ok(None)
        assert reports[1].error is None

    def test_verify_raises_the_first_failing_trace(self, random_effect):
        spec = program(
            [
                trace([yields(random_effect.takes().returns(1)), returns(1)]),
                trace([yields(random_effect.takes().returns(5)), returns(6)]),
            ]
        )

        def io():
            return (yield random_effect())

        with pytest.raises(VerificationError, match=r"^trace 1, step 1: expected 6 but got 5") as info:
            Verifier(spec).verify(io)
        assert info.value.trace_index == 1


class TestStrictImplementation:
    def test_undeclared_effect_surfaces_with_location(self):
        def io(fx):
            yield fx.effect(1)
            yield fx.sql("select * from users")

        with pytest.raises(UndeclaredEffectError, match="'sql' is not declared") as info:
            verify(RETURNING, implementation(RETURNING, io, strict=True))
        assert info.value.step_index == 1


def test_empty_program_verifies_anything():
    verify(program([]), lambda: None)


def test_verifier_requires_a_program():
    with pytest.raises(TypeError):
        Verifier([trace([returns(None)])])


def test_procedures_must_take_no_required_arguments():
    with pytest.raises(TypeError, match="no required arguments"):
        verify(RETURNING, lambda user_id: None)


def test_mismatch_messages_point_at_the_declaration(monkeypatch):
    monkeypatch.setattr("dospec.utils.DEBUG_EFFECTS", False)

    def io(fx):
        yield fx.effect(2)

    with pytest.raises(ArgumentMismatchError) as info:
        verify(RETURNING, implementation(RETURNING, io))
    assert "expected step declared at" in str(info.value)
    assert "requested at" in str(info.value)
    assert 'File "' not in str(info.value)


def test_debug_mode_prints_the_creation_stack(monkeypatch):
    monkeypatch.setattr("dospec.utils.DEBUG_EFFECTS", True)
    spec = program([trace([yields(effect.takes(1).returns("string")), returns("string")])])

    def io(fx):
        yield fx.effect(2)

    with pytest.raises(ArgumentMismatchError) as info:
        verify(spec, implementation(spec, io))
    message = str(info.value)
    assert "yield fx.effect(2)" in message
    assert 'File "' in message
