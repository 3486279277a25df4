from dataclasses import dataclass, field


@dataclass(eq=False)
class HardAbort(Exception):
    """
    Setup failure after which no further assertion can be trusted:
    the whole test run has to stop.
    """
    message: str
    url: str = None
    details: dict = field(default_factory=dict)

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self):
        lines = [self.message]
        if self.url:
            lines.append(f"url={self.url}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class ParseError(ValueError):

    def __init__(self, message, path=None, line_no=None):
        self.path = path
        self.line_no = line_no
        where = ""
        if path is not None:
            where = f"{path}:{line_no}: " if line_no is not None else f"{path}: "
        super().__init__(f"{where}{message}")
