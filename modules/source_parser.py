"""
tree-sitter front end for TypeScript/JavaScript component files.
"""
import logging
from pathlib import Path
from typing import Iterator, Optional

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

logger = logging.getLogger(__name__)

JSX_ELEMENT_TYPES = ("jsx_element", "jsx_self_closing_element")

_LANGUAGE_LOADERS = {
    ".ts": tree_sitter_typescript.language_typescript,
    ".tsx": tree_sitter_typescript.language_tsx,
    ".js": tree_sitter_javascript.language,
    ".jsx": tree_sitter_javascript.language,
}
_languages: dict[str, Language] = {}


def language_for(suffix: str) -> Optional[Language]:
    """Grammar for a file extension, built once per process."""
    loader = _LANGUAGE_LOADERS.get(suffix.lower())
    if loader is None:
        return None
    if suffix not in _languages:
        _languages[suffix] = Language(loader())
    return _languages[suffix]


def parse_source(source: bytes, suffix: str) -> Optional[Tree]:
    """Parse source bytes. Returns None when the grammar reports errors."""
    language = language_for(suffix)
    if language is None:
        return None
    tree = Parser(language).parse(source)
    if tree.root_node.has_error:
        return None
    return tree


def parse_file(path: Path) -> Optional[Tree]:
    return parse_source(Path(path).read_bytes(), Path(path).suffix)


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal without recursion."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def node_text(node: Optional[Node]) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"`":
        return text[1:-1]
    return text


def opening_tag(element: Node) -> Node:
    """The node that carries the tag name and attributes."""
    if element.type == "jsx_element":
        return element.child_by_field_name("open_tag") or element.children[0]
    return element


def tag_name(element: Node) -> str:
    tag = opening_tag(element)
    return node_text(tag.child_by_field_name("name"))


def _attribute_value(value: Optional[Node]) -> Optional[str]:
    """Static string value of an attribute, or None when it is computed."""
    if value is None:
        return ""
    if value.type == "string":
        return strip_quotes(node_text(value))
    if value.type == "jsx_expression":
        inner = [child for child in value.named_children if child.type != "comment"]
        if len(inner) == 1 and inner[0].type == "string":
            return strip_quotes(node_text(inner[0]))
        if len(inner) == 1 and inner[0].type == "template_string":
            if not any(c.type == "template_substitution" for c in inner[0].named_children):
                return strip_quotes(node_text(inner[0]))
    return None


def attributes(element: Node) -> dict[str, Optional[str]]:
    """
    Map attribute name to its static value.

    A present attribute with a computed value (e.g. onClick={handler})
    maps to None; a bare boolean attribute maps to "".
    """
    attrs = {}
    for child in opening_tag(element).named_children:
        if child.type != "jsx_attribute" or not child.named_children:
            continue
        name = node_text(child.named_children[0])
        value = child.named_children[1] if len(child.named_children) > 1 else None
        attrs[name] = _attribute_value(value)
    return attrs


def element_text(element: Node) -> str:
    """First non-blank text directly inside an element."""
    if element.type != "jsx_element":
        return ""
    for child in element.named_children:
        if child.type == "jsx_text":
            text = " ".join(node_text(child).split())
            if text:
                return text
    return ""


def jsx_elements(root: Node) -> Iterator[Node]:
    for node in walk(root):
        if node.type in JSX_ELEMENT_TYPES:
            yield node


def imports(root: Node) -> list[str]:
    """Module specifiers of every import statement, in source order."""
    found = []
    for node in root.named_children:
        if node.type == "import_statement":
            source = node.child_by_field_name("source")
            if source is not None:
                found.append(strip_quotes(node_text(source)))
    return found


def exports(root: Node) -> list[str]:
    """Exported names; a default export is reported as 'default'."""
    found = []
    for node in root.named_children:
        if node.type != "export_statement":
            continue
        if any(child.type == "default" for child in node.children):
            found.append("default")
            continue
        declaration = node.child_by_field_name("declaration")
        if declaration is None:
            # export { a, b as c }
            for spec in walk(node):
                if spec.type == "export_specifier":
                    alias = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                    found.append(node_text(alias))
            continue
        if declaration.type in ("lexical_declaration", "variable_declaration"):
            for declarator in declaration.named_children:
                if declarator.type == "variable_declarator":
                    found.append(node_text(declarator.child_by_field_name("name")))
        else:
            name = declaration.child_by_field_name("name")
            if name is not None:
                found.append(node_text(name))
    return found
