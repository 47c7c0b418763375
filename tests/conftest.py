"""
Shared test configuration for PageChunk.

Provides sample documents and deterministic doubles for the injected
collaborators (embedding provider, site-hint provider).
"""

# Third-party imports
import pytest

# Local imports
from pagechunk.config import Config, LazyConfig
from pagechunk.protocols import ChunkingOptions, ExtractedContent

from tests.helpers.doubles import FailingEmbeddingProvider, HashingEmbeddingProvider

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")
    config.addinivalue_line("markers", "performance: Performance and load tests")
    config.addinivalue_line("markers", "slow: Tests that take >10 seconds")


# ============================================================================
# Core Test Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def reset_lazy_config():
    """Make every test see a freshly loaded global config."""
    LazyConfig.reset()
    yield
    LazyConfig.reset()


@pytest.fixture
def test_config() -> Config:
    return Config()


@pytest.fixture
def embedding_provider() -> HashingEmbeddingProvider:
    return HashingEmbeddingProvider()


@pytest.fixture
def failing_embedding_provider() -> FailingEmbeddingProvider:
    return FailingEmbeddingProvider()


@pytest.fixture
def small_options() -> ChunkingOptions:
    return ChunkingOptions(max_chunk_size=200, min_chunk_size=40, overlap_size=20)


@pytest.fixture
def prose_text() -> str:
    paragraphs = []
    for i in range(12):
        paragraphs.append(
            f"Paragraph {i} talks about rivers and valleys. "
            "Water carves the stone slowly over many years. "
            "Travellers follow the banks toward the sea."
        )
    return "\n\n".join(paragraphs)


@pytest.fixture
def prose_content(prose_text) -> ExtractedContent:
    return ExtractedContent(url="https://example.com/rivers", title="Rivers", main_text=prose_text)


@pytest.fixture
def markdown_content() -> ExtractedContent:
    text = """# Getting Started

Install the package and configure your environment before the first run.

## Installation

Use the installer that ships with your platform. It places the binaries on your path.

```
pip install example
example --version
```

## Usage

| Flag | Meaning |
| --- | --- |
| -v | verbose |

- first step
- second step

### Advanced

Tune the worker count once the defaults feel slow for your workload.
"""
    return ExtractedContent.from_text(text, url="https://example.com/guide")


@pytest.fixture
def article_html() -> str:
    body = " ".join(
        f"The river valley sentence number {i} describes how water and stone shape the land." for i in range(12)
    )
    return f"""<!DOCTYPE html>
<html>
<head>
  <title>Rivers of the North</title>
  <script>var tracking = 1;</script>
  <style>body {{ color: red; }}</style>
</head>
<body>
  <nav class="main-nav"><a href="/">Home</a> <a href="/about">About</a> <a href="/blog">Blog</a></nav>
  <header><div>Site header banner text</div></header>
  <div class="advertisement">Buy the best boots today at half price</div>
  <div class="cookie-banner">We use cookies to improve your experience on this site</div>
  <!-- comment that must disappear -->
  <article>
    <h1>Rivers of the North</h1>
    <p>{body}</p>
    <p>See the <a href="/maps/north">regional map</a> for the full course of the river.</p>
    <img src="/img/river.jpg" srcset="/img/river-480.jpg 480w, /img/river-1200.jpg 1200w">
  </article>
  <div class="link-farm">
    <a href="/a">Link one</a> <a href="/b">Link two</a> <a href="/c">Link three</a> <a href="/d">Link four</a>
  </div>
  <footer>Copyright 2024 Example Media</footer>
</body>
</html>
"""
