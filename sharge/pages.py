"""
Embedded HTML pages for SHARGE.

Pages are assembled from small string pieces; every value coming from
the filesystem or the request is escaped on the way in.
"""

import html
from typing import List, Optional
from urllib.parse import quote

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

from sharge.tree import Entry, format_size


STYLE = """
    <style>
        :root {
            --bg-color: #f5f6f8;
            --card-color: #ffffff;
            --text-primary: #1f2933;
            --text-secondary: #616e7c;
            --accent-color: #2563eb;
            --error-color: #dc2626;
        }
        body { font-family: system-ui, sans-serif; background: var(--bg-color); color: var(--text-primary); margin: 0; }
        .container { max-width: 960px; margin: 0 auto; padding: 24px; }
        .card { background: var(--card-color); border-radius: 8px; padding: 20px; margin-bottom: 20px; box-shadow: 0 1px 3px rgba(0,0,0,.1); }
        .btn { background: var(--accent-color); color: #fff; border: 0; border-radius: 6px; padding: 8px 14px; cursor: pointer; text-decoration: none; }
        .btn-danger { background: var(--error-color); }
        .error { color: var(--error-color); margin-top: 10px; }
        .tree, .tree ul { list-style: none; padding-left: 18px; }
        .tree li { padding: 3px 0; }
        .meta { color: var(--text-secondary); font-size: 0.85em; margin-left: 8px; }
        .actions a, .actions button { font-size: 0.8em; margin-left: 6px; }
        .document pre { white-space: pre-wrap; word-wrap: break-word; }
        .document table { border-collapse: collapse; }
        .document th, .document td { border: 1px solid #d2d6dc; padding: 4px 8px; }
    </style>
"""


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        "<html lang=\"en\">\n<head>\n"
        "    <meta charset=\"UTF-8\">\n"
        "    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1.0\">\n"
        f"    <title>{html.escape(title)}</title>\n"
        f"{STYLE}"
        "</head>\n<body>\n"
        f"    <div class=\"container\">\n{body}\n    </div>\n"
        "</body>\n</html>\n"
    )


def render_login(error: Optional[str] = None) -> str:
    """Login form"""
    error_html = f'<div class="error">{html.escape(error)}</div>' if error else ""
    body = f"""
        <div class="card">
            <h1>SHARGE</h1>
            <form method="post" action="/login">
                <input type="password" name="password" placeholder="Password" autofocus>
                <button class="btn" type="submit">Login</button>
            </form>
            {error_html}
        </div>"""
    return _page("Login - SHARGE", body)


def render_tree(entries: List[Entry]) -> str:
    """Nested list markup for a file tree"""
    items = []
    for entry in entries:
        name = html.escape(entry.name)
        url_path = quote(entry.path)
        modified = entry.modified.strftime("%Y-%m-%d %H:%M")
        if entry.is_dir:
            items.append(
                f'<li data-path="{html.escape(entry.path)}">&#128193; {name}'
                f'<span class="meta">{modified}</span>'
                f'{render_tree(entry.children or [])}</li>'
            )
        else:
            items.append(
                f'<li data-path="{html.escape(entry.path)}">'
                f'<input type="checkbox" class="pick" value="{html.escape(entry.path)}"> '
                f'<a href="/view/{url_path}">{name}</a>'
                f'<span class="meta">{html.escape(entry.size)} &middot; {modified}</span>'
                f'<span class="actions"><a href="/dl?f={quote(entry.path, safe="")}">download</a>'
                f'<button onclick="renameEntry(this)">rename</button>'
                f'<button onclick="removeEntry(this)">delete</button></span></li>'
            )
    return f'<ul class="tree">{"".join(items)}</ul>'


SCRIPT = """
    <script>
        function entryPath(button) {
            return button.closest('li').dataset.path;
        }

        async function post(url) {
            const response = await fetch(url, { method: 'POST' });
            if (!response.ok) {
                alert(await response.text());
                return;
            }
            window.location.reload();
        }

        function removeEntry(button) {
            const path = entryPath(button);
            if (confirm('Delete ' + path + '?')) {
                post('/rm?f=' + encodeURIComponent(path));
            }
        }

        function renameEntry(button) {
            const path = entryPath(button);
            const target = prompt('New path', path);
            if (target && target !== path) {
                post('/re?o=' + encodeURIComponent(path) + '&n=' + encodeURIComponent(target));
            }
        }

        function makeDirectory() {
            const name = prompt('Directory name');
            if (name) {
                post('/mkdir?d=' + encodeURIComponent(name));
            }
        }

        function downloadSelected() {
            const picked = Array.from(document.querySelectorAll('.pick:checked'));
            if (picked.length === 0) {
                return;
            }
            const query = picked.map(p => 'f=' + encodeURIComponent(p.value)).join('&');
            window.location.href = '/dl?' + query;
        }

        async function upload(event) {
            event.preventDefault();
            const form = event.target;
            const response = await fetch('/upload', { method: 'POST', body: new FormData(form) });
            if (!response.ok) {
                alert(await response.text());
                return;
            }
            window.location.reload();
        }
    </script>
"""


def render_index(entries: List[Entry], max_upload_size: int) -> str:
    """Main file browser page"""
    body = f"""
        <div class="card">
            <h1>SHARGE</h1>
            <a class="btn" href="/logout">Logout</a>
        </div>
        <div class="card">
            <h2>Upload Files</h2>
            <form onsubmit="upload(event)">
                <input type="file" name="files[]" multiple>
                <input type="text" name="dir" placeholder="Directory (optional)">
                <button class="btn" type="submit">Upload</button>
                <span class="meta">max {format_size(max_upload_size)}</span>
            </form>
        </div>
        <div class="card">
            <h2>Files</h2>
            <button class="btn" onclick="makeDirectory()">New Directory</button>
            <button class="btn" onclick="downloadSelected()">Download Selected</button>
            {render_tree(entries)}
        </div>
{SCRIPT}"""
    return _page("Files - SHARGE", body)


def render_document(title: str, text: str) -> str:
    """Markdown document rendered as a page"""
    body = f"""
        <div class="card document">
{render_markdown(text)}
        </div>"""
    return _page(f"{title} - SHARGE", body)


# ============================================================================
# Markdown
# ============================================================================

class _ExternalLinksInNewTab(Treeprocessor):
    def run(self, root):
        for link in root.iter("a"):
            if link.get("href", "").startswith(("http://", "https://")):
                link.set("target", "_blank")
                link.set("rel", "noopener noreferrer")


class SafeDocumentExtension(Extension):
    """
    Treat raw HTML in documents as text and open external links in a new tab.

    Removing the raw HTML block and inline handlers makes the serializer
    escape any tags found in the source.
    """

    def extendMarkdown(self, md):
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")
        md.treeprocessors.register(_ExternalLinksInNewTab(md), "external_links", 1)


MARKDOWN_EXTENSIONS = [
    "abbr",
    "attr_list",
    "def_list",
    "fenced_code",
    "footnotes",
    "tables",
    "toc",
    "sane_lists",
    SafeDocumentExtension(),
]


def render_markdown(text: str) -> str:
    """Convert markdown to an HTML fragment with heading ids"""
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS, output_format="html")
