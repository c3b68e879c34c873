from flowwright.remote.client import KlaviyoClient
from flowwright.remote.content import ContentPipeline, build_email_html
from flowwright.remote.creator import APIFlowCreator
from flowwright.remote.directory import NameDirectory, TriggerDirectory

__all__ = [
    "APIFlowCreator",
    "ContentPipeline",
    "KlaviyoClient",
    "NameDirectory",
    "TriggerDirectory",
    "build_email_html",
]
