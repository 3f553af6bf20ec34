"""Page-side scripts shared by the driver and the inspection tools.

Scripts passed to :meth:`AutomationDriver.evaluate` are function bodies that
read their inputs through ``arguments`` and ``return`` a JSON-compatible
value. :data:`CONSOLE_HOOK` is a plain script so it can also be registered as
a page init script.
"""

CONSOLE_BUFFER_LIMIT = 1000

CONSOLE_HOOK = """
(() => {
  if (window.__browserToolHubConsole) return;
  const entries = [];
  window.__browserToolHubConsole = entries;
  const render = (value) => {
    if (typeof value === 'string') return value;
    try { return JSON.stringify(value); } catch (e) { return String(value); }
  };
  const record = (level, values) => {
    entries.push({
      level: level,
      message: values.map(render).join(' '),
      timestamp: new Date().toISOString(),
    });
    if (entries.length > %d) entries.shift();
  };
  ['log', 'info', 'warn', 'error', 'debug'].forEach((level) => {
    const original = console[level];
    console[level] = function (...values) {
      record(level, values);
      return original.apply(console, values);
    };
  });
  window.addEventListener('error', (event) => record('error', [event.message]));
  window.addEventListener('unhandledrejection', (event) => {
    record('error', ['Unhandled promise rejection: ' + render(event.reason)]);
  });
})();
""" % CONSOLE_BUFFER_LIMIT

READ_CONSOLE = CONSOLE_HOOK + """
return window.__browserToolHubConsole.slice();
"""

COUNT_CONSOLE = CONSOLE_HOOK + """
return window.__browserToolHubConsole.length;
"""

CLEAR_CONSOLE = CONSOLE_HOOK + """
const cleared = window.__browserToolHubConsole.length;
window.__browserToolHubConsole.length = 0;
return cleared;
"""

# Resolves arguments[0] (selector) with arguments[1] (strategy) the same way
# the Playwright driver does, then describes what it found.
_RESOLVE = """
const [selector, by] = arguments;
const collect = () => {
  switch (by) {
    case 'xpath': {
      const found = document.evaluate(selector, document, null,
        XPathResult.ORDERED_NODE_SNAPSHOT_TYPE, null);
      const nodes = [];
      for (let i = 0; i < found.snapshotLength; i++) nodes.push(found.snapshotItem(i));
      return nodes;
    }
    case 'id': {
      const node = document.getElementById(selector);
      return node ? [node] : [];
    }
    case 'name': return Array.from(document.getElementsByName(selector));
    case 'className': return Array.from(document.getElementsByClassName(selector));
    case 'tagName': return Array.from(document.getElementsByTagName(selector));
    default: return Array.from(document.querySelectorAll(selector));
  }
};
"""

_VISIBLE = """
const isVisible = (el) => {
  if (!(el.offsetWidth || el.offsetHeight || el.getClientRects().length)) return false;
  const style = window.getComputedStyle(el);
  return style.visibility !== 'hidden' && style.display !== 'none';
};
"""

CHECK_ELEMENT = _RESOLVE + _VISIBLE + """
const nodes = collect();
return {
  exists: nodes.length > 0,
  count: nodes.length,
  visible: nodes.some((el) => el.nodeType === 1 && isVisible(el)),
};
"""

# arguments[0] is an options object: selector, limit, visibleOnly,
# containsText, attribute {name, value}.
QUERY_ELEMENTS = _VISIBLE + """
const options = arguments[0] || {};
const limit = options.limit || 100;
const needle = options.containsText ? options.containsText.toLowerCase() : null;
const attribute = options.attribute || null;
const describe = (el) => {
  const tag = el.tagName.toLowerCase();
  let hint = tag;
  if (el.id) {
    hint = '#' + CSS.escape(el.id);
  } else if (el.getAttribute('name')) {
    hint = tag + '[name="' + el.getAttribute('name') + '"]';
  }
  return {
    tagName: tag,
    id: el.id || null,
    name: el.getAttribute('name'),
    type: el.getAttribute('type'),
    className: typeof el.className === 'string' ? el.className : null,
    text: (el.innerText || el.textContent || '').trim().slice(0, 100),
    href: el.getAttribute('href'),
    displayed: isVisible(el),
    enabled: !el.disabled,
    selector: hint,
  };
};
const matched = Array.from(document.querySelectorAll(options.selector || '*')).filter((el) => {
  if (options.visibleOnly && !isVisible(el)) return false;
  if (needle && !(el.innerText || el.textContent || '').toLowerCase().includes(needle)) return false;
  if (attribute && attribute.name) {
    if (!el.hasAttribute(attribute.name)) return false;
    if (attribute.value != null && el.getAttribute(attribute.name) !== attribute.value) return false;
  }
  return true;
});
return {
  total: matched.length,
  elements: matched.slice(0, limit).map((el, index) => Object.assign({index: index}, describe(el))),
};
"""

INTERACTIVE_SELECTOR = (
    "a[href], button, input:not([type=hidden]), select, textarea, "
    "[role=button], [role=link], [onclick], [contenteditable=true]"
)

ELEMENT_TYPE_SELECTORS = {
    "button": "button, input[type=button], input[type=submit], input[type=reset], [role=button]",
    "input": "input:not([type=hidden]), textarea",
    "link": "a[href]",
    "form": "form",
    "select": "select",
    "any": "*",
}
