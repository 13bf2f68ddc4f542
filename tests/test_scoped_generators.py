"""
Tests for generators that carry their own context layer across resumes.
"""

import gc

import pytest

import scope_trace
from ctxstack import Context, ContextStack, ContextVar, ScopedGenerator, scoped


class TestScopedGenerator:
    """Writes inside the generator stay in its layer."""

    def test_writes_do_not_leak(self, stack):
        var = ContextVar("v")
        stack.set(var, "caller")

        def gen():
            stack.set(var, "generator")
            yield stack.get(var)
            yield stack.get(var)

        g = ScopedGenerator(gen(), stack)
        assert next(g) == "generator"
        assert stack.get(var) == "caller"
        assert next(g) == "generator"
        assert g.context[var] == "generator"

    def test_reads_follow_caller(self, stack):
        """Unshadowed variables resolve against the caller's stack at resume time."""
        var = ContextVar("v")

        def gen():
            while True:
                yield stack.get(var)

        g = ScopedGenerator(gen(), stack)
        stack.set(var, 1)
        assert next(g) == 1
        stack.set(var, 2)
        assert next(g) == 2

    def test_layer_popped_between_resumes(self, stack):
        depths = []

        def gen():
            depths.append(stack.depth)
            yield
            depths.append(stack.depth)
            yield

        g = ScopedGenerator(gen(), stack)
        next(g)
        assert stack.depth == 1
        next(g)
        assert depths == [2, 2]

    def test_send(self, stack):
        var = ContextVar("total")

        def gen():
            stack.set(var, 0)
            while True:
                n = yield stack.get(var)
                stack.set(var, stack.get(var) + n)

        g = ScopedGenerator(gen(), stack)
        assert g.send(None) == 0
        assert g.send(5) == 5
        assert g.send(3) == 8
        assert stack.get(var, None) is None

    def test_throw(self, stack):
        var = ContextVar("v")
        seen = []

        def gen():
            stack.set(var, "inside")
            try:
                yield
            except ValueError:
                seen.append(stack.get(var))
                yield "handled"

        g = ScopedGenerator(gen(), stack)
        next(g)
        assert g.throw(ValueError) == "handled"
        assert seen == ["inside"]

    def test_throw_instance(self, stack):
        def gen():
            yield

        g = ScopedGenerator(gen(), stack)
        next(g)
        with pytest.raises(KeyError):
            g.throw(KeyError("k"))

    def test_throw_type_and_value(self, stack):
        def gen():
            yield

        g = ScopedGenerator(gen(), stack)
        next(g)
        with pytest.raises(ValueError, match="bad input"):
            g.throw(ValueError, "bad input")
        assert stack.depth == 1

    def test_throw_type_and_args_tuple(self, stack):
        def gen():
            yield

        g = ScopedGenerator(gen(), stack)
        next(g)
        with pytest.raises(ValueError) as info:
            g.throw(ValueError, ("bad", 2))
        assert info.value.args == ("bad", 2)

    def test_close(self, stack):
        var = ContextVar("v")
        seen = []

        def gen():
            stack.set(var, "inside")
            try:
                yield
            finally:
                seen.append((stack.depth, stack.get(var)))

        g = ScopedGenerator(gen(), stack)
        next(g)
        g.close()
        assert seen == [(2, "inside")]
        assert stack.depth == 1

    def test_iteration(self, stack):
        g = ScopedGenerator(squares(4), stack)
        assert list(g) == [0, 1, 4, 9]

    def test_explicit_context(self, stack):
        var = ContextVar("v")

        def gen():
            yield stack.get(var)

        g = ScopedGenerator(gen(), stack, Context({var: "preset"}))
        assert next(g) == "preset"

    def test_generator_cannot_resume_itself(self, stack):
        """The layer is in use while the body runs, so nested resumption is refused."""
        holder = []

        def gen():
            yield next(holder[0])

        g = ScopedGenerator(gen(), stack)
        holder.append(g)
        with pytest.raises((RuntimeError, ValueError)):
            next(g)


class TestDroppedGenerators:
    """Generators released without close() clean up inside their own layer."""

    def test_cleanup_sees_own_layer(self, stack):
        var = ContextVar("v")
        stack.set(var, "outer")
        seen = []

        def gen():
            stack.set(var, "inner")
            try:
                yield
            finally:
                seen.append((stack.depth, stack.get(var)))
                stack.set(var, "cleanup")

        g = ScopedGenerator(gen(), stack)
        next(g)
        del g
        gc.collect()
        assert seen == [(2, "inner")]
        assert stack.get(var) == "outer"
        assert stack.depth == 1

    def test_unstarted_generator_runs_nothing(self, stack):
        seen = []

        def gen():
            seen.append("started")
            yield

        g = ScopedGenerator(gen(), stack)
        del g
        gc.collect()
        assert seen == []
        assert stack.depth == 1

    def test_finished_generator_not_pushed(self, stack, trace_output):
        out = trace_output(scope_trace.TRACE_TRANSITIONS)
        g = ScopedGenerator(squares(2), stack)
        assert list(g) == [0, 1]
        out.truncate(0)
        out.seek(0)
        del g
        gc.collect()
        assert out.getvalue() == ""

    def test_closed_stack_traced(self, trace_output):
        out = trace_output(scope_trace.TRACE_LIFECYCLE)
        s = ContextStack()
        seen = []

        def gen():
            try:
                yield
            finally:
                seen.append("cleanup")

        g = ScopedGenerator(gen(), s)
        next(g)
        s.close()
        del g
        gc.collect()
        assert seen == ["cleanup"]
        assert "[SCOPE:FINALIZE]" in out.getvalue()


def squares(n):
    for i in range(n):
        yield i * i


class TestScopedDecorator:
    """@scoped(target)"""

    def test_decorator_with_stack(self, stack):
        var = ContextVar("v")

        @scoped(stack)
        def numbered(items):
            for i, item in enumerate(items):
                stack.set(var, i)
                yield item, stack.get(var)

        g = numbered("ab")
        assert isinstance(g, ScopedGenerator)
        assert list(g) == [("a", 0), ("b", 1)]
        assert stack.get(var, None) is None

    def test_decorator_keeps_name(self, stack):
        @scoped(stack)
        def produce():
            yield 1

        assert produce.__name__ == "produce"

    def test_decorator_with_registry(self, registry):
        var = ContextVar("v")

        @scoped(registry)
        def gen():
            registry.current().set(var, "gen")
            yield registry.current().get(var)

        g = gen()
        assert next(g) == "gen"
        assert registry.current().get(var, None) is None

    def test_each_call_gets_fresh_layer(self, stack):
        var = ContextVar("v")

        @scoped(stack)
        def gen(value):
            stack.set(var, value)
            yield
            yield stack.get(var)

        a = gen("a")
        b = gen("b")
        next(a)
        next(b)
        assert next(a) == "a"
        assert next(b) == "b"
