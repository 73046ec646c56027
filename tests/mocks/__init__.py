from .fake_platforms import FakeInflowClient, FakeShopifyClient, source_failure
