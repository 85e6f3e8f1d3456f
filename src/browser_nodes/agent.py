"""
Natural-language page agent.

Implements act / extract / observe on a Playwright page:
- snapshot: numbered list of the page's interactive elements (with xpaths)
  plus its readable text
- observe: the model picks snapshot elements matching an instruction
- act: observe, then perform the first candidate's action with Playwright
- extract: the model answers with JSON shaped by a CanonicalSchema, which is
  validated before it is returned
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Error as PlaywrightError, Page
from pydantic import ValidationError as PydanticValidationError

from .config import NodeSettings, get_settings
from .errors import ActionError, LLMOutputParsingError
from .llm import LLMClient
from .logging_config import get_logger
from .schema import CanonicalSchema

logger = get_logger(__name__)

# Walks the DOM and returns interactive / landmark elements with absolute xpaths.
SNAPSHOT_SCRIPT = """
(maxElements) => {
  const INTERACTIVE = new Set(['a', 'button', 'input', 'select', 'textarea', 'option', 'summary', 'details', 'label']);
  const ROLES = new Set(['button', 'link', 'checkbox', 'radio', 'tab', 'menuitem', 'option', 'switch',
    'textbox', 'combobox', 'searchbox', 'listbox', 'slider', 'spinbutton', 'heading', 'img', 'dialog']);
  const xpathOf = (el) => {
    const parts = [];
    for (let node = el; node && node.nodeType === 1; node = node.parentNode) {
      let index = 1;
      for (let sib = node.previousElementSibling; sib; sib = sib.previousElementSibling) {
        if (sib.nodeName === node.nodeName) index++;
      }
      parts.unshift(node.nodeName.toLowerCase() + '[' + index + ']');
    }
    return '/' + parts.join('/');
  };
  const visible = (el) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    return rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
  };
  const roleOf = (el) => {
    const explicit = el.getAttribute('role');
    if (explicit) return explicit;
    const tag = el.tagName.toLowerCase();
    if (tag === 'a') return 'link';
    if (tag === 'input') {
      const type = (el.getAttribute('type') || 'text').toLowerCase();
      if (['checkbox', 'radio'].includes(type)) return type;
      if (['submit', 'button', 'reset'].includes(type)) return 'button';
      return 'textbox';
    }
    if (tag === 'select') return 'combobox';
    if (tag === 'textarea') return 'textbox';
    if (/^h[1-6]$/.test(tag)) return 'heading';
    if (tag === 'img') return 'img';
    return tag;
  };
  const nameOf = (el) => {
    const label = el.getAttribute('aria-label') || el.getAttribute('alt') || el.getAttribute('title')
      || el.getAttribute('placeholder') || (el.labels && el.labels[0] && el.labels[0].innerText) || el.innerText || el.value || '';
    return String(label).replace(/\\s+/g, ' ').trim().slice(0, 100);
  };
  const elements = [];
  for (const el of document.querySelectorAll('*')) {
    if (elements.length >= maxElements) break;
    const tag = el.tagName.toLowerCase();
    const role = el.getAttribute('role');
    const isHeading = /^h[1-6]$/.test(tag);
    if (!INTERACTIVE.has(tag) && !(role && ROLES.has(role)) && !isHeading && tag !== 'img'
        && !el.hasAttribute('onclick') && el.getAttribute('contenteditable') !== 'true') continue;
    if (!visible(el)) continue;
    elements.push({ tag, role: roleOf(el), name: nameOf(el), xpath: xpathOf(el) });
  }
  return { elements, text: (document.body && document.body.innerText) || '', url: location.href, title: document.title };
}
"""

ACTION_METHODS = ("click", "fill", "type", "press", "select_option", "hover", "check", "uncheck")

OBSERVE_SYSTEM_PROMPT = """\
You help automate a web page. You are given an instruction and a numbered
list of the page's elements in the form `[index] role: "name"`.

Return the elements that best match the instruction as JSON:
{"elements": [{"index": <number>, "description": "<what the element is>",
  "method": "<one of: click, fill, type, press, select_option, hover, check, uncheck>",
  "arguments": ["<argument>", ...]}]}

- Only use indices that appear in the list.
- `arguments` holds the text to fill/type, the key to press or the option to select.
- Order elements from most to least relevant. Return an empty list if nothing matches.
"""

EXTRACT_SYSTEM_PROMPT = """\
You extract structured data from a web page. You are given an instruction,
a JSON Schema and the page's readable text.

Respond with a single JSON object that matches the schema. Only use
information present on the page; use null for optional fields you cannot find.
"""


@dataclass
class PageSnapshot:
    """Indexed view of a page."""

    url: str
    title: str
    elements: list[dict[str, Any]] = field(default_factory=list)
    text: str = ""

    def render(self) -> str:
        lines = []
        for index, element in enumerate(self.elements):
            line = f"[{index}] {element.get('role') or element.get('tag', '')}"
            if element.get("name"):
                line += f': "{element["name"]}"'
            lines.append(line)
        return "\n".join(lines)

    def selector(self, index: int) -> str | None:
        if 0 <= index < len(self.elements):
            return f"xpath={self.elements[index]['xpath']}"
        return None


class PageAgent:
    """
    Drives one page with a language model.

    Usage:
        agent = PageAgent(page, LLMClient(credential))
        result = await agent.act("click the sign in button")
    """

    def __init__(
        self,
        page: Page,
        llm: LLMClient | None = None,
        settings: NodeSettings | None = None,
    ):
        self.page = page
        self.llm = llm
        self.settings = settings or get_settings()

    def _require_llm(self) -> LLMClient:
        if self.llm is None:
            raise ActionError("A language model is required for this operation")
        return self.llm

    async def snapshot(self) -> PageSnapshot:
        """Capture the indexed element list and readable text of the page."""
        try:
            raw = await self.page.evaluate(SNAPSHOT_SCRIPT, self.settings.snapshot_max_elements)
        except PlaywrightError as e:
            raise ActionError(f"Could not read the page: {e.message}", cause=e) from e

        text = raw.get("text", "")
        max_chars = self.settings.snapshot_max_chars
        if len(text) > max_chars:
            text = text[:max_chars] + "\n... (truncated)"
        return PageSnapshot(
            url=raw.get("url", ""),
            title=raw.get("title", ""),
            elements=list(raw.get("elements", [])),
            text=text,
        )

    async def accessibility_tree(self) -> dict[str, Any]:
        """Return the indexed element tree and the xpath of every index."""
        snapshot = await self.snapshot()
        return {
            "url": snapshot.url,
            "title": snapshot.title,
            "accessibility_tree": snapshot.render(),
            "xpaths": [element["xpath"] for element in snapshot.elements],
        }

    async def observe(self, instruction: str = "") -> list[dict[str, Any]]:
        """
        Find elements matching ``instruction``.

        Returns:
            Candidates as ``{selector, description, method, arguments}``,
            most relevant first.
        """
        llm = self._require_llm()
        snapshot = await self.snapshot()
        prompt = (
            f"Instruction: {instruction or 'List the interactive elements of this page.'}\n\n"
            f"Page: {snapshot.title} ({snapshot.url})\n\n"
            f"Elements:\n{snapshot.render()}"
        )
        answer = await llm.complete_json(system=OBSERVE_SYSTEM_PROMPT, prompt=prompt)
        if not isinstance(answer, dict) or not isinstance(answer.get("elements"), list):
            raise LLMOutputParsingError("Model answer has no 'elements' list")

        candidates = []
        for entry in answer["elements"]:
            if not isinstance(entry, dict):
                continue
            try:
                index = int(entry.get("index"))
            except (TypeError, ValueError):
                continue
            selector = snapshot.selector(index)
            if selector is None:
                logger.debug("observe_index_dropped", index=index)
                continue
            method = entry.get("method") if entry.get("method") in ACTION_METHODS else "click"
            arguments = entry.get("arguments") or []
            if not isinstance(arguments, list):
                arguments = [arguments]
            candidates.append(
                {
                    "selector": selector,
                    "description": str(entry.get("description") or snapshot.elements[index].get("name", "")),
                    "method": method,
                    "arguments": [str(a) for a in arguments],
                }
            )
        return candidates

    async def act(self, instruction: str) -> dict[str, Any]:
        """Perform the action described by ``instruction``."""
        candidates = await self.observe(instruction)
        if not candidates:
            return {
                "success": False,
                "message": f"No element found for: {instruction}",
                "action": instruction,
            }

        candidate = candidates[0]
        await self.perform(candidate)
        return {
            "success": True,
            "message": f"Action [{candidate['method']}] performed on {candidate['description']!r}",
            "action": instruction,
            "selector": candidate["selector"],
            "method": candidate["method"],
            "arguments": candidate["arguments"],
        }

    async def perform(self, candidate: dict[str, Any]) -> None:
        """Run an observed candidate's method against its selector."""
        locator = self.page.locator(candidate["selector"])
        method = candidate["method"]
        arguments = candidate.get("arguments") or []
        argument = arguments[0] if arguments else ""

        if method in ("fill", "type", "press", "select_option") and not arguments:
            raise ActionError(f"Action '{method}' needs an argument")

        if method == "click":
            await locator.click()
        elif method == "fill":
            await locator.fill(argument)
        elif method == "type":
            await locator.press_sequentially(argument)
        elif method == "press":
            await locator.press(argument)
        elif method == "select_option":
            await locator.select_option(arguments)
        elif method == "hover":
            await locator.hover()
        elif method == "check":
            await locator.check()
        elif method == "uncheck":
            await locator.uncheck()
        else:
            raise ActionError(f"Unsupported action method '{method}'")

    async def extract(self, instruction: str, schema: CanonicalSchema) -> dict[str, Any]:
        """
        Extract data shaped by ``schema``.

        Raises:
            ActionError: If the answer does not validate against the schema.
        """
        llm = self._require_llm()
        snapshot = await self.snapshot()
        prompt = (
            f"Instruction: {instruction}\n\n"
            f"JSON Schema:\n{json.dumps(schema.to_json_schema(), indent=2)}\n\n"
            f"Page: {snapshot.title} ({snapshot.url})\n\n"
            f"Page text:\n{snapshot.text}"
        )
        answer = await llm.complete_json(system=EXTRACT_SYSTEM_PROMPT, prompt=prompt)

        model = schema.to_model()
        try:
            validated = model.model_validate(answer)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
            )
            raise ActionError(f"Extracted data does not match the schema: {problems}", cause=e) from e
        return validated.model_dump(by_alias=True, exclude_unset=True)
