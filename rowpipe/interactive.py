"""Interactive confirmation prompts."""

from typing import Callable, Optional, Protocol


class Confirmer(Protocol):
    """Anything that can answer a yes/no prompt."""

    def confirm(self, prompt: str) -> bool:
        ...


class ConsoleConfirmer:
    """
    Asks the operator on the console.

    Empty answers take the default; EOF (closed stdin) answers no.
    """

    YES = {'y', 'yes'}
    NO = {'n', 'no'}

    def __init__(self, default: bool = True, input_func: Optional[Callable[[str], str]] = None):
        self.default = default
        self.input_func = input_func or input

    def confirm(self, prompt: str) -> bool:
        suffix = '[Y/n]' if self.default else '[y/N]'
        while True:
            try:
                answer = self.input_func(f"{prompt} {suffix} ").strip().lower()
            except EOFError:
                return False

            if not answer:
                return self.default
            if answer in self.YES:
                return True
            if answer in self.NO:
                return False
