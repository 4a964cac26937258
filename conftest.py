from http_client import FetchResult

LIST_TEMPLATE = "https://iotlt.example/event/?page={page}"


class FakeClient:
    """Stands in for HttpClient: serves canned pages and records every request."""

    def __init__(self, pages=None, redirects=None):
        # url -> (status, text[, final_url]) or an exception instance to raise
        self.pages = dict(pages or {})
        # short url -> FetchResult
        self.redirects = dict(redirects or {})
        self.requests = []
        self.request_headers = {}
        self.max_bytes = {}
        self.resolved = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def fetch_text(self, url, timeout=30, headers=None, max_bytes=None):
        self.requests.append(url)
        self.request_headers[url] = headers
        self.max_bytes[url] = max_bytes
        page = self.pages.get(url)
        if page is None:
            return FetchResult(404, url, "")
        if isinstance(page, Exception):
            raise page
        status, text, *final = page
        return FetchResult(status, final[0] if final else url, text)

    async def fetch_page(self, url, timeout=30):
        return await self.fetch_text(url, timeout)

    async def resolve_final_url(self, url, timeout=12):
        self.resolved.append(url)
        return self.redirects.get(url, FetchResult(0, url))


def detail_page(title="IoTLT vol.100", when="2024/05/10(金) 19:00 ～ 21:00",
                place="オンライン", address=None, participants="参加者（60人）", body=""):
    adr = f'<p class="adr">{address}</p>' if address is not None else ""
    return f"""<html>
<head><title>{title} - connpass</title></head>
<body>
<div class="current_event_title">{title}</div>
<p class="ymd">{when}</p>
<div class="place"><p class="place_name">{place}</p>{adr}</div>
<ul class="tab"><li><a href="participation/">{participants}</a></li></ul>
<div class="event_description">{body}</div>
</body>
</html>"""


def list_page(urls, total=None):
    blocks = "\n".join(
        f'<div class="group_event_list vevent"><a class="summary url" href="{u}">{u}</a></div>'
        for u in urls
    )
    count = f"<h2>イベント（{total}件）</h2>" if total is not None else ""
    return f"<html><body>{count}{blocks}</body></html>"
