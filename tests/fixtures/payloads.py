"""업스트림 응답 샘플 (축약본)"""

WIKIPEDIA_RESPONSE = {
    "batchcomplete": "",
    "continue": {"sroffset": 10, "continue": "-||"},
    "query": {
        "searchinfo": {"totalhits": 2},
        "search": [
            {
                "ns": 0,
                "title": "Docker (software)",
                "pageid": 43325049,
                "snippet": '<span class="searchmatch">Docker</span> is a set of platform as a service products',
                "timestamp": "2024-05-01T12:00:00Z",
            },
            {
                "ns": 0,
                "title": "Docker Inc.",
                "pageid": 52000001,
                "snippet": "Docker, Inc. is an American technology company",
                "timestamp": "2024-04-11T08:30:00Z",
            },
        ],
    },
}

HTML_RESULTS_PAGE = """
<html><body>
<ul class="results-standard">
  <li>
    <h2><a href="https://docs.docker.com/get-started/">Get started | Docker Docs</a></h2>
    <p class="s">Learn how to build and run <b>containers</b>.</p>
  </li>
  <li>
    <h2><a href="//www.docker.com/">Docker: Accelerated Container Application Development</a></h2>
    <p class="s">Docker helps developers build, share, and run applications.</p>
  </li>
  <li>
    <h2>No link here</h2>
  </li>
</ul>
<div class="related"><a>docker compose</a><a>docker desktop</a></div>
</body></html>
"""
