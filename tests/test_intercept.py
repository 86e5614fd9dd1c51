import pytest

from trellisweb.intercept import (
    ALL_CONTROLLERS,
    Interception,
    InterceptorRegistry,
    When,
)


class Controller:
    def __init__(self):
        self.result = None


class InterceptController(Controller):
    def meth_n(self):
        return None

    def meth_p(self):
        return None


class InterceptControllerN(InterceptController):
    def meth_nn(self):
        return None

    def meth_np(self):
        return None


class InterceptControllerP(InterceptController):
    def meth_pn(self):
        return None

    def meth_pp(self):
        return None


class InterceptControllerNP(InterceptControllerN, InterceptControllerP):
    pass


def func_p(controller):
    return None


def func_p2(controller):
    return None


METHODS_N = [
    (InterceptController.meth_n, InterceptController),
    (InterceptController.meth_p, InterceptController),
    (InterceptControllerN.meth_nn, InterceptControllerN),
    (InterceptControllerN.meth_np, InterceptControllerN),
]

METHODS_P = [
    (InterceptController.meth_n, InterceptController),
    (InterceptController.meth_p, InterceptController),
    (InterceptControllerP.meth_pn, InterceptControllerP),
    (InterceptControllerP.meth_pp, InterceptControllerP),
]


@pytest.mark.parametrize(
    ("controller", "methods"),
    [
        (InterceptControllerN(), METHODS_N),
        (InterceptControllerP(), METHODS_P),
        (InterceptControllerNP(), METHODS_N),
        (InterceptControllerNP(), METHODS_P),
    ],
)
def test_invoke_arg_type(controller, methods):
    registry = InterceptorRegistry()
    registry.intercept_func(func_p, When.BEFORE, controller)
    registry.intercept_func(func_p2, When.BEFORE, ALL_CONTROLLERS)
    for method, target in methods:
        registry.intercept_method(method, When.BEFORE, target)

    found = registry.interceptors_for(When.BEFORE, controller)
    assert len(found) == 6
    assert found[0].function is func_p
    assert found[1].function is func_p2
    for interception in found:
        assert interception.invoke(controller) is None


def test_interceptors_for_excludes_unrelated_controllers():
    registry = InterceptorRegistry()
    registry.intercept_func(func_p2, When.BEFORE, ALL_CONTROLLERS)
    for method, target in METHODS_N:
        registry.intercept_method(method, When.BEFORE, target)

    found = registry.interceptors_for(When.BEFORE, InterceptControllerP())
    assert [i.function for i in found] == [
        func_p2,
        InterceptController.meth_n,
        InterceptController.meth_p,
    ]


def test_interceptors_for_filters_by_stage():
    registry = InterceptorRegistry()
    registry.intercept_func(func_p, When.AFTER, ALL_CONTROLLERS)
    registry.intercept_func(func_p2, When.BEFORE, ALL_CONTROLLERS)
    found = registry.interceptors_for(When.AFTER, Controller())
    assert [i.function for i in found] == [func_p]


def test_intercept_func_with_class_target():
    registry = InterceptorRegistry()
    interception = registry.intercept_func(func_p, When.BEFORE, InterceptControllerN)
    assert interception.target is InterceptControllerN
    assert interception.applies_to(InterceptControllerNP())
    assert not interception.applies_to(InterceptControllerP())


def test_all_controllers_target_applies_to_anything():
    interception = Interception(when=When.BEFORE, function=func_p)
    assert interception.applies_to(object())


def test_intercept_method_rejects_bad_signature():
    registry = InterceptorRegistry()
    bound = InterceptController().meth_n
    with pytest.raises(TypeError):
        registry.intercept_method(bound, When.BEFORE, InterceptController)
    with pytest.raises(TypeError):
        registry.intercept_method(lambda c, extra: None, When.BEFORE, InterceptController)
    assert registry.interceptions == []


def test_method_interceptor_receives_controller():
    seen = []

    class Recording(Controller):
        def mark(self):
            seen.append(self)
            return "done"

    registry = InterceptorRegistry()
    registry.intercept_method(Recording.mark, When.AFTER, Recording)
    controller = Recording()
    registry.invoke(When.AFTER, controller)
    assert seen == [controller]
    assert controller.result == "done"


def test_run_before_result_skips_action():
    calls = []
    registry = InterceptorRegistry()
    registry.intercept_func(lambda c: "early", When.BEFORE, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: calls.append("before2"), When.BEFORE, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: calls.append("after"), When.AFTER, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: calls.append("finally"), When.FINALLY, ALL_CONTROLLERS)
    controller = Controller()

    registry.run(controller, lambda c: calls.append("action"))

    assert controller.result == "early"
    assert calls == ["finally"]


def test_run_normal_order_and_action_result():
    calls = []
    registry = InterceptorRegistry()
    registry.intercept_func(lambda c: calls.append("before"), When.BEFORE, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: calls.append("after"), When.AFTER, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: calls.append("panic"), When.PANIC, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: calls.append("finally"), When.FINALLY, ALL_CONTROLLERS)
    controller = Controller()

    def action(c):
        calls.append("action")
        return "rendered"

    registry.run(controller, action)
    assert calls == ["before", "action", "after", "finally"]
    assert controller.result == "rendered"


def test_after_results_replace_and_last_wins():
    registry = InterceptorRegistry()
    registry.intercept_func(lambda c: "first", When.AFTER, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: "second", When.AFTER, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: None, When.AFTER, ALL_CONTROLLERS)
    controller = Controller()
    registry.run(controller, lambda c: "action")
    assert controller.result == "second"


def test_after_without_result_keeps_action_result():
    registry = InterceptorRegistry()
    registry.intercept_func(lambda c: None, When.AFTER, ALL_CONTROLLERS)
    controller = Controller()
    registry.run(controller, lambda c: "action")
    assert controller.result == "action"


def test_run_exception_invokes_panic_then_finally_and_reraises():
    calls = []
    registry = InterceptorRegistry()
    registry.intercept_func(lambda c: calls.append("after"), When.AFTER, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: calls.append("panic"), When.PANIC, ALL_CONTROLLERS)
    registry.intercept_func(lambda c: calls.append("finally"), When.FINALLY, ALL_CONTROLLERS)

    def action(c):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        registry.run(Controller(), action)
    assert calls == ["panic", "finally"]