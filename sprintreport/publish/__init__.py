"""
Report publishing: page block building and the Notion page writer.
"""

from sprintreport.publish.blocks import (
    Block,
    Labels,
    build_document_blocks,
    build_page_title,
    chunk_blocks,
    describe_blocks,
    get_labels,
)
from sprintreport.publish.notion import NotionPublisher, page_url

__all__ = [
    "Block",
    "Labels",
    "build_document_blocks",
    "build_page_title",
    "chunk_blocks",
    "describe_blocks",
    "get_labels",
    "NotionPublisher",
    "page_url",
]
