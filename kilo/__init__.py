# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Generic REST invocation client with query, form, and multipart argument encoding."""

from kilo.arguments import (
    ArgumentMap,
    ArgumentValue,
    BooleanArg,
    ByteSource,
    BytesSource,
    FileArg,
    FileRef,
    ListArg,
    NullArg,
    NumberArg,
    StringArg,
    TimestampArg,
    normalize_arguments,
    to_argument,
)
from kilo.codec import JsonCodec
from kilo.config import CancellationMode, ProxyConfig
from kilo.dispatch import DispatchContext, Invocation, ManualDispatcher, ResultHandler, ThreadDispatcher
from kilo.encoding import encode_form_body, encode_multipart_body, encode_query, new_boundary, url_encode
from kilo.errors import DecodingError, EncodingError, HttpError, TransportError, WebServiceError
from kilo.proxy import WebServiceProxy
from kilo.request import Encoding, Method, RequestDescriptor, build_request
from kilo.response import RawResponse, ResponseDecoder, Success, classify, default_decoder, json_decoder
from kilo.transport import AsyncTransport, TransportCall

__all__ = [
    "ArgumentMap",
    "ArgumentValue",
    "AsyncTransport",
    "BooleanArg",
    "ByteSource",
    "BytesSource",
    "CancellationMode",
    "DecodingError",
    "DispatchContext",
    "Encoding",
    "EncodingError",
    "FileArg",
    "FileRef",
    "HttpError",
    "Invocation",
    "JsonCodec",
    "ListArg",
    "ManualDispatcher",
    "Method",
    "NullArg",
    "NumberArg",
    "ProxyConfig",
    "RawResponse",
    "RequestDescriptor",
    "ResponseDecoder",
    "ResultHandler",
    "StringArg",
    "Success",
    "ThreadDispatcher",
    "TimestampArg",
    "TransportCall",
    "TransportError",
    "WebServiceError",
    "WebServiceProxy",
    "build_request",
    "classify",
    "default_decoder",
    "encode_form_body",
    "encode_multipart_body",
    "encode_query",
    "json_decoder",
    "new_boundary",
    "normalize_arguments",
    "to_argument",
    "url_encode",
]
