from datetime import date

from pydantic import BaseModel

from dashboard.entities import ContributionCalendar


class CalendarDay(BaseModel):
    """Single day item used in the calendar response."""

    date: date
    count: int
    level: int


class CalendarWeek(BaseModel):
    """Sunday-first week; days outside the requested year are null."""

    week_start: date
    days: list[CalendarDay | None]


class CalendarResponse(BaseModel):
    """Yearly contribution calendar with totals and streaks."""

    username: str
    year: int
    total_contributions: int
    max_contributions: int
    current_streak: int
    longest_streak: int
    weeks: list[CalendarWeek]

    @classmethod
    def from_calendar(
        cls, username: str, calendar: ContributionCalendar
    ) -> "CalendarResponse":
        return cls(
            username=username,
            year=calendar.year,
            total_contributions=calendar.total_contributions,
            max_contributions=calendar.max_contributions,
            current_streak=calendar.current_streak,
            longest_streak=calendar.longest_streak,
            weeks=[
                CalendarWeek(
                    week_start=week.week_start,
                    days=[
                        None
                        if day is None
                        else CalendarDay(date=day.date, count=day.count, level=day.level)
                        for day in week.days
                    ],
                )
                for week in calendar.weeks
            ],
        )
