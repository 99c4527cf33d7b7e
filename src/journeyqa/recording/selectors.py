"""
Selector heuristics used while recording.

``suggest_selectors`` ranks alternative selectors for a live element with
fixed reliability weights. The weights are a priority ranking, not calibrated
probabilities. Only the id-based selector is checked for uniqueness against
the live document; the other strategies are heuristic.

``generate_selector`` picks the best-effort selector for a captured event
target: id, then a tag+class combination that is unique on the page, then the
bare tag name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from journeyqa.models import SelectorCandidate, SelectorType
from journeyqa.recording.events import ElementInfo

if TYPE_CHECKING:
    from journeyqa.driver import BrowserDriver, ElementHandle

logger = structlog.get_logger(__name__)

RELIABILITY_ID = 0.95
RELIABILITY_NAME = 0.90
RELIABILITY_XPATH = 0.90
RELIABILITY_ARIA = 0.85
RELIABILITY_PLACEHOLDER = 0.80
RELIABILITY_CLASS = 0.70
RELIABILITY_TEXT = 0.60

COUNT_MATCHES_SCRIPT = "(selector) => document.querySelectorAll(selector).length"

ELEMENT_PROPERTIES_SCRIPT = """
(el) => ({
  tagName: el.tagName.toLowerCase(),
  id: el.id || '',
  className: typeof el.className === 'string' ? el.className : '',
  text: (el.textContent || '').trim().substring(0, 50),
  type: el.getAttribute('type') || '',
  placeholder: el.getAttribute('placeholder') || '',
  ariaLabel: el.getAttribute('aria-label') || '',
  role: el.getAttribute('role') || '',
  name: el.getAttribute('name') || '',
})
"""

XPATH_SCRIPT = """
(el) => {
  if (el.id) { return `//${el.tagName.toLowerCase()}[@id="${el.id}"]`; }
  const path = [];
  let node = el;
  while (node && node.nodeType === Node.ELEMENT_NODE) {
    let part = node.tagName.toLowerCase();
    if (node.id) {
      path.unshift(`${part}[@id="${node.id}"]`);
      break;
    }
    let nth = 1;
    for (let sib = node.previousElementSibling; sib; sib = sib.previousElementSibling) {
      if (sib.tagName === node.tagName) { nth++; }
    }
    path.unshift(`${part}[${nth}]`);
    node = node.parentElement;
  }
  return path.length ? '//' + path.join('/') : '';
}
"""


async def count_matches(driver: BrowserDriver, selector: str) -> int:
    """Uniqueness check: how many elements in the live document match a CSS selector."""
    result = await driver.evaluate(COUNT_MATCHES_SCRIPT, selector)
    try:
        return int(result)
    except (TypeError, ValueError):
        return 0


async def is_unique(driver: BrowserDriver, selector: str) -> bool:
    return await count_matches(driver, selector) == 1


async def suggest_selectors(
    driver: BrowserDriver,
    handle: ElementHandle,
) -> list[SelectorCandidate]:
    """
    Suggest selectors for a live element, most reliable first.

    Args:
        driver: Driver facade used for the property read and the id uniqueness check
        handle: Live element handle

    Returns:
        Candidates for the attributes the element actually has (may be empty)
    """
    payload: dict[str, Any] | None = await driver.evaluate(ELEMENT_PROPERTIES_SCRIPT, handle)
    if not payload:
        return []
    info = ElementInfo.from_payload(payload)
    tag = info.tag_name
    candidates: list[SelectorCandidate] = []

    if info.element_id and await is_unique(driver, f"#{info.element_id}"):
        candidates.append(SelectorCandidate(
            selector=f"#{info.element_id}",
            type=SelectorType.CSS,
            reliability=RELIABILITY_ID,
            element=f"{tag}#{info.element_id}",
        ))

    if info.classes:
        class_selector = "." + ".".join(info.classes)
        candidates.append(SelectorCandidate(
            selector=class_selector,
            type=SelectorType.CSS,
            reliability=RELIABILITY_CLASS,
            element=f"{tag}{class_selector}",
        ))

    if info.name:
        candidates.append(SelectorCandidate(
            selector=f'[name="{info.name}"]',
            type=SelectorType.CSS,
            reliability=RELIABILITY_NAME,
            element=f'{tag}[name="{info.name}"]',
        ))

    if info.aria_label:
        candidates.append(SelectorCandidate(
            selector=f'[aria-label="{info.aria_label}"]',
            type=SelectorType.ARIA,
            reliability=RELIABILITY_ARIA,
            element=f'{tag}[aria-label="{info.aria_label}"]',
        ))

    if info.placeholder:
        candidates.append(SelectorCandidate(
            selector=f'[placeholder="{info.placeholder}"]',
            type=SelectorType.CSS,
            reliability=RELIABILITY_PLACEHOLDER,
            element=f'{tag}[placeholder="{info.placeholder}"]',
        ))

    if info.text:
        candidates.append(SelectorCandidate(
            selector=f'text="{info.text}"',
            type=SelectorType.TEXT,
            reliability=RELIABILITY_TEXT,
            element=f'{tag} with text "{info.text}"',
        ))

    xpath = await driver.evaluate(XPATH_SCRIPT, handle)
    if xpath:
        candidates.append(SelectorCandidate(
            selector=str(xpath),
            type=SelectorType.XPATH,
            reliability=RELIABILITY_XPATH,
            element=f"{tag} via XPath",
        ))

    # sorted() is stable: equal weights keep the order above
    return sorted(candidates, key=lambda c: c.reliability, reverse=True)


async def generate_selector(driver: BrowserDriver, element: ElementInfo) -> str:
    """Best-effort selector for a captured event target."""
    if element.element_id:
        return f"#{element.element_id}"

    if element.classes:
        candidate = f"{element.tag_name}.{'.'.join(element.classes)}"
        try:
            if await is_unique(driver, candidate):
                return candidate
        except Exception as e:
            logger.debug("Uniqueness check failed", selector=candidate, error=str(e))

    return element.tag_name


def describe_click(element: ElementInfo) -> str:
    """Human-readable description of a click target."""
    text = element.text
    if element.tag_name == "button" or element.role == "button":
        return f'Click button "{text}"' if text else "Click button"
    if element.tag_name == "a" or element.role == "link":
        return f'Click link "{text}"' if text else "Click link"
    if element.tag_name == "input" and element.input_type == "submit":
        return "Click submit button"
    return f'Click {element.tag_name} "{text}"' if text else f"Click {element.tag_name}"


def describe_input(element: ElementInfo) -> str:
    """Human-readable description of a typing target."""
    description = f"Type into {element.tag_name}"
    if element.input_type and element.input_type != "text":
        description += f"[{element.input_type}]"
    if element.aria_label:
        description += f' "{element.aria_label}"'
    elif element.placeholder:
        description += f' "{element.placeholder}"'
    return description
