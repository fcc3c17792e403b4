from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from strawberry.fastapi import GraphQLRouter

from studiodesk.core.logging_config import setup_logging
from studiodesk.core.settings import CORS_ALLOW_ORIGINS
from studiodesk.graphql.context import build_context
from studiodesk.graphql.schema import schema

setup_logging()

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

graphql_app = GraphQLRouter(
    schema=schema,
    context_getter=build_context,
    graphiql=True
)
app.include_router(graphql_app, prefix="/graphql")
