"""Commands used to exercise discovery, forms and execution.

This second paragraph never shows up in listings.
"""

from textwrap import dedent

import commandsite.services.commands.namespace as integration
from commandsite.services.commands.namespace import Namespace


def greet(name):
    """Say hello.

    @param [String] name a name
    """
    print(f"Hello {name}")


def add(a, b, verbose=False):
    """Add two numbers.

    @param [Integer] a the first number
    @param b [Integer] the second number
    @param [Boolean] verbose print the working
    @return [Integer] the sum
    """
    if verbose:
        print(f"{a} + {b}")
    return a + b


def echo_options(test_arg, test_option="option_default"):
    """A command with an optional argument

    @param test_arg [String] a test argument
    @param [String] test_option an optional test argument
    """
    print(f"test_arg={test_arg},test_option={test_option}")


def collect(first="x", *rest):
    """Collect values into a list.

    @param [String] first the leading value
    @param [Array] rest everything else
    """
    return [first, *rest]


def shout(message, *, console):
    """Write through the injected console."""
    console.print(message.upper())
    console.print("warned", error=True)


def fail(message):
    """Guaranteed to raise an error every time

    @param message a message to be printed to stdout
    """
    print(message)
    raise RuntimeError("Check out this error!")


def no_docs():
    print(dedent("    no docs command test"))


def _private_helper():
    print("never routed")
