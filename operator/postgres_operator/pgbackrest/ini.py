"""Deterministic rendering of pgBackRest ini documents."""


class IniMultiSet(dict):
    """
    Options of one ini section.

    A key may hold several values; each renders on its own line. Keys always
    render in sorted order so that equal option sets produce equal text.
    """

    def set(self, key: str, value: str) -> None:
        """Replace every value of key with value."""
        self[key] = [value]

    def __str__(self) -> str:
        lines = []
        for key in sorted(self):
            for value in self[key]:
                if value:
                    lines.append(f"{key} = {value}\n")
                else:
                    lines.append(f"{key} =\n")
        return "".join(lines)


class IniSectionSet(dict):
    """
    Sections of an ini document keyed by section name.

    The global section and its command specific variants, such as
    "global:server", render before stanza sections.
    """

    def __str__(self) -> str:
        global_sections = sorted(
            k for k in self if k == "global" or k.startswith("global:")
        )
        stanza_sections = sorted(
            k for k in self if k != "global" and not k.startswith("global:")
        )
        return "".join(
            f"\n[{name}]\n{self[name]}" for name in global_sections + stanza_sections
        )
