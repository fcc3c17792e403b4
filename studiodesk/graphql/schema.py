import strawberry

from studiodesk.graphql.calendar.mutations import CalendarMutation
from studiodesk.graphql.calendar.queries import CalendarQuery


@strawberry.type
class Query(CalendarQuery):
    @strawberry.field
    def hello(self) -> str:
        return "Hello from GraphQL!"


@strawberry.type
class Mutation(CalendarMutation):
    pass


schema = strawberry.Schema(query=Query, mutation=Mutation)
