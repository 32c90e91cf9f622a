from pebble_cms.sanitize import sanitize_html


class TestSanitizeHtml:
    def test_removes_script_with_content(self):
        out = sanitize_html("<p>Hi</p><script>alert(1)</script><p>Bye</p>")
        assert "<script" not in out.lower()
        assert "alert" not in out
        assert out == "<p>Hi</p><p>Bye</p>"

    def test_removes_uppercase_script(self):
        assert "script" not in sanitize_html("<SCRIPT type='text/javascript'>x()</SCRIPT>").lower()

    def test_removes_event_handlers(self):
        out = sanitize_html('<img src="a.png" onerror="x()">')
        assert "onerror" not in out
        assert out == '<img src="a.png">'

    def test_removes_unquoted_event_handler(self):
        assert sanitize_html("<div onclick=steal()>x</div>") == "<div>x</div>"

    def test_strips_javascript_urls(self):
        assert sanitize_html('<a href="javascript:alert(1)">x</a>') == '<a href="">x</a>'
        assert sanitize_html("<form action='JavaScript:go()'></form>") == '<form action=""></form>'

    def test_keeps_normal_urls(self):
        html = '<a href="https://example.com/javascript">x</a>'
        assert sanitize_html(html) == html

    def test_removes_embedding_tags(self):
        out = sanitize_html('<iframe src="https://evil.example"></iframe><object data="x"></object><embed src="y">')
        assert out == ""

    def test_empty_input(self):
        assert sanitize_html("") == ""
        assert sanitize_html(None) == ""

    def test_leaves_safe_markup_alone(self):
        html = '<h2>Title</h2><p>Some <strong>bold</strong> text and <img src="/a.png" alt="a"></p>'
        assert sanitize_html(html) == html
