"""
Scope tips

Work done in the instance scope runs once per instance and is reused by
every later invocation. Work done inside the handler runs on every call.
"""

from functools import reduce

from fnscope import Context, Request, Response, http_trigger, instance_value, lazy_value, serverless

NUMBERS = [1, 2, 3, 4, 5, 6, 7, 8, 9]


def light_computation() -> int:
    return reduce(lambda total, x: total + x, NUMBERS)


def heavy_computation() -> int:
    # Multiplication is more computationally expensive than addition
    return reduce(lambda total, x: total * x, NUMBERS)


function_specific_computation = heavy_computation
file_wide_computation = light_computation


# Instance-wide scope: runs at instance cold start
@instance_value("instance_var")
def compute_instance_var() -> int:
    return heavy_computation()


@serverless
@http_trigger(path="/scope-demo", methods=["GET"])
async def scope_demo(request: Request, context: Context) -> Response:
    """
    Per-instance value next to a per-invocation value.

    Access at: /scope-demo
    """
    # Per-function scope: runs every time this function is called
    function_var = light_computation()
    instance_var = context.instance.get("instance_var")

    return Response.text(f"Per instance: {instance_var}, per function: {function_var}")


# Always initialized, at cold start
@instance_value("non_lazy_global")
def compute_non_lazy_global() -> int:
    return file_wide_computation()


# Initialized only if (and when) a function needs it
@lazy_value("lazy_global")
def compute_lazy_global() -> int:
    return function_specific_computation()


@serverless
@http_trigger(path="/lazy-globals", methods=["GET"])
async def lazy_globals(request: Request, context: Context) -> Response:
    """
    Lazily initialized instance value next to an eager one.

    Access at: /lazy-globals
    """
    lazy_global = context.instance.get("lazy_global")
    non_lazy_global = context.instance.get("non_lazy_global")

    return Response.text(f"Lazy global: {lazy_global}, non-lazy global: {non_lazy_global}")
