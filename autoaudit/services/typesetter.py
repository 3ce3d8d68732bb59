"""
Math typesetting for rendered reports.

Finds $...$ and $$...$$ spans in rendered HTML and rewrites the LaTeX inside
them as inline markup: <sup>/<sub> for scripts, a/b for fractions, a radical
sign for roots and Unicode for Greek letters and operators. Commands it does
not know are printed by name, which keeps function names like sin or log.
"""
import asyncio
import html
import re
from typing import Optional

# An escaped \$ neither opens nor closes a span
MATH_PATTERN = re.compile(r"(?<!\\)\$\$((?:\\.|[^$<\\])+?)\$\$|(?<!\\)\$((?:\\.|[^$<\\])+?)\$")

TAG_PATTERN = re.compile(r"<[^>]+>")

SYMBOLS = {
    "alpha": "α", "beta": "β", "gamma": "γ", "delta": "δ", "epsilon": "ε", "varepsilon": "ε",
    "zeta": "ζ", "eta": "η", "theta": "θ", "vartheta": "ϑ", "lambda": "λ", "mu": "μ", "nu": "ν",
    "xi": "ξ", "pi": "π", "rho": "ρ", "sigma": "σ", "tau": "τ", "phi": "φ", "varphi": "φ",
    "chi": "χ", "psi": "ψ", "omega": "ω",
    "Gamma": "Γ", "Delta": "Δ", "Theta": "Θ", "Lambda": "Λ", "Pi": "Π", "Sigma": "Σ",
    "Phi": "Φ", "Psi": "Ψ", "Omega": "Ω",
    "le": "≤", "leq": "≤", "ge": "≥", "geq": "≥", "ne": "≠", "neq": "≠", "approx": "≈",
    "equiv": "≡", "sim": "∼", "pm": "±", "mp": "∓", "times": "×", "cdot": "·", "div": "÷",
    "infty": "∞", "to": "→", "rightarrow": "→", "leftarrow": "←", "Rightarrow": "⇒",
    "Leftarrow": "⇐", "Leftrightarrow": "⇔", "iff": "⇔", "in": "∈", "notin": "∉",
    "subset": "⊂", "subseteq": "⊆", "supset": "⊃", "cup": "∪", "cap": "∩", "emptyset": "∅",
    "varnothing": "∅", "forall": "∀", "exists": "∃", "perp": "⊥", "parallel": "∥",
    "angle": "∠", "triangle": "△", "circ": "°", "degree": "°", "sum": "∑",
    "prod": "∏", "int": "∫", "oint": "∮", "partial": "∂", "nabla": "∇", "ldots": "…",
    "cdots": "⋯", "dots": "…", "prime": "′", "mid": "|", "backslash": "\\",
    "langle": "⟨", "rangle": "⟩", "lfloor": "⌊", "rfloor": "⌋", "lceil": "⌈", "rceil": "⌉",
}

BLACKBOARD = {"R": "ℝ", "N": "ℕ", "Z": "ℤ", "Q": "ℚ", "C": "ℂ"}

SPACES = {"quad": "  ", "qquad": "    ", "enspace": " ", "space": " "}

IGNORED = {
    "left", "right", "displaystyle", "textstyle", "limits", "nolimits",
    "big", "Big", "bigg", "Bigg", "bigl", "bigr", "Bigl", "Bigr",
    "begin", "end",
}

FRACTIONS = {"frac", "dfrac", "tfrac", "cfrac"}
TEXT_COMMANDS = {"text", "textrm", "mathrm", "operatorname", "textbf", "mathbf", "textit", "mathit"}

ESCAPED_CHARS = {
    "\\": "<br />", "{": "{", "}": "}", ",": " ", ";": " ", ":": " ", "!": "",
    " ": " ", "%": "%", "$": "$", "&": "&amp;", "_": "_", "#": "#",
}


def _wrap(fragment: str) -> str:
    visible = html.unescape(TAG_PATTERN.sub("", fragment))
    return f"({fragment})" if len(visible) > 1 else fragment


class _LatexReader:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _skip_spaces(self):
        while self._peek().isspace():
            self.pos += 1

    def read_until(self, closing: Optional[str] = None) -> str:
        out = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if closing and ch == closing:
                self.pos += 1
                return "".join(out)
            if ch == "\\":
                out.append(self._command())
            elif ch == "{":
                self.pos += 1
                out.append(self.read_until("}"))
            elif ch in "^_":
                self.pos += 1
                tag = "sup" if ch == "^" else "sub"
                out.append(f"<{tag}>{self._argument()}</{tag}>")
            elif ch == "}":
                self.pos += 1
            elif ch == "~":
                self.pos += 1
                out.append(" ")
            else:
                self.pos += 1
                out.append(html.escape(ch, quote=False))
        return "".join(out)

    def _argument(self) -> str:
        self._skip_spaces()
        ch = self._peek()
        if not ch:
            return ""
        if ch == "{":
            self.pos += 1
            return self.read_until("}")
        if ch == "\\":
            return self._command()
        self.pos += 1
        return html.escape(ch, quote=False)

    def _raw_argument(self) -> str:
        self._skip_spaces()
        if self._peek() != "{":
            return self._argument()
        depth = 0
        start = self.pos + 1
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    raw = self.text[start:self.pos]
                    self.pos += 1
                    return html.escape(raw, quote=False)
            self.pos += 1
        return html.escape(self.text[start:], quote=False)

    def _optional(self) -> Optional[str]:
        if self._peek() != "[":
            return None
        end = self.text.find("]", self.pos)
        if end == -1:
            return None
        inner = _LatexReader(self.text[self.pos + 1:end]).read_until()
        self.pos = end + 1
        return inner

    def _command(self) -> str:
        self.pos += 1
        start = self.pos
        while self._peek().isalpha():
            self.pos += 1
        name = self.text[start:self.pos]

        if not name:
            ch = self._peek()
            if ch:
                self.pos += 1
            return ESCAPED_CHARS.get(ch, html.escape(ch, quote=False))

        if name in FRACTIONS:
            numerator = self._argument()
            denominator = self._argument()
            return f"{_wrap(numerator)}/{_wrap(denominator)}"
        if name == "sqrt":
            index = self._optional()
            root = f"√{_wrap(self._argument())}"
            return f"<sup>{index}</sup>{root}" if index else root
        if name in TEXT_COMMANDS:
            return self._raw_argument()
        if name == "mathbb":
            letter = self._raw_argument()
            return BLACKBOARD.get(letter, letter)
        if name in ("vec", "overrightarrow"):
            return f"{self._argument()}\u20d7"
        if name in ("overline", "bar"):
            return f"{self._argument()}\u0305"
        if name in ("hat", "widehat"):
            return f"{self._argument()}\u0302"
        if name in ("begin", "end"):
            self._raw_argument()
            return ""
        if name in IGNORED:
            return ""
        if name in SPACES:
            return SPACES[name]
        if name in SYMBOLS:
            return SYMBOLS[name]
        return html.escape(name, quote=False)


def latex_to_html(source: str) -> str:
    """Convert one LaTeX math span (HTML-escaped or not) to inline HTML"""
    return _LatexReader(html.unescape(source).strip()).read_until()


def typeset_html(markup: str) -> str:
    def _replace(match: re.Match) -> str:
        if match.group(1) is not None:
            return f'<span class="math-block">{latex_to_html(match.group(1))}</span>'
        return f'<span class="math">{latex_to_html(match.group(2))}</span>'

    return MATH_PATTERN.sub(_replace, markup)


class MathTypesetter:
    """Default typesetting engine used by the exporter"""

    async def typeset(self, markup: str) -> str:
        return await asyncio.to_thread(typeset_html, markup)
