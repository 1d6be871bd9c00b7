"""
Capability Resolver
===================

Rejects programs that name host-level capabilities before anything runs.
The interpreter has no dispatch path for these names; rejecting them up front
classifies the attempt as a security violation instead of an unknown method.
"""

from dsl_playground.core.dsl.errors import DSLSecurityError
from dsl_playground.core.dsl.syntax import Call, Name, Program, walk

HOST_CAPABILITIES = frozenset(
    {
        # process and shell
        "system",
        "exec",
        "spawn",
        "fork",
        "syscall",
        "trap",
        "abort",
        "exit",
        "exit!",
        "at_exit",
        "sleep",
        # reflection and dynamic evaluation
        "eval",
        "instance_eval",
        "instance_exec",
        "class_eval",
        "module_eval",
        "binding",
        "send",
        "public_send",
        "method",
        "methods",
        "define_method",
        "instance_variable_get",
        "instance_variable_set",
        "const_get",
        "const_set",
        "class",
        "singleton_class",
        "extend",
        "include",
        "caller",
        "self",
        # code loading
        "require",
        "require_relative",
        "load",
        "autoload",
        # files and I/O
        "open",
        "popen",
        "gets",
        "puts",
        "print",
        "printf",
        "pp",
        "warn",
        "display",
    }
)


def is_host_capability(name: str) -> bool:
    return name in HOST_CAPABILITIES or name.startswith("__")


def check_capabilities(program: Program) -> None:
    """
    Reject calls and names that refer to host capabilities.

    Keyword argument labels are data, not calls, and are never checked.

    Raises:
        DSLSecurityError: On the first capability reference in source order
    """
    for node in walk(program):
        if isinstance(node, (Call, Name)) and is_host_capability(node.name):
            raise DSLSecurityError(
                f"Call to host capability '{node.name}' is not allowed in the sandbox",
                node.location,
                cause="host capability",
            )
