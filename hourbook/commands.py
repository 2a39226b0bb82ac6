from collections.abc import Callable
from datetime import date, timedelta

import discord
from discord import app_commands

from .businesstime import business_date_of, parse_business_datetime, utc_now
from .errors import TrackerError
from .models import HOURLY, PAYMENT
from .reporter import (
    build_session_line,
    build_week_line,
    describe_error,
    format_currency,
    format_seconds,
)

MODE_CHOICES = [
    app_commands.Choice(name="Hourly", value=HOURLY),
    app_commands.Choice(name="Payment", value=PAYMENT),
]


async def _respond(bot, interaction: discord.Interaction, command: str, build: Callable[[], str]) -> None:
    # Business-rule failures become messages; anything else is logged and reported generically.
    try:
        content = build()
    except TrackerError as exc:
        content = describe_error(exc)
    except ValueError as exc:
        content = f"Invalid input: {exc}"
    except Exception:
        bot.logger.exception("/%s failed", command)
        content = "Something went wrong while saving your time. Please try again."
    await interaction.response.send_message(content, ephemeral=True)


def register_commands(bot) -> None:
    """Register all slash commands on the bot. Called once during setup."""
    guild_scope = discord.Object(id=bot.config.guild_id)
    tracker = bot.tracker
    reporter = bot.reporter

    @bot.tree.command(name="register", description="Register and set your hourly rate", guild=guild_scope)
    @app_commands.describe(rate="Hourly rate in dollars")
    async def register(interaction: discord.Interaction, rate: float | None = None):
        def build() -> str:
            user = tracker.register_user(str(interaction.user.id), rate or bot.config.default_hourly_rate)
            return f"Registered with an hourly rate of {format_currency(user.hourly_rate)}."

        await _respond(bot, interaction, "register", build)

    @bot.tree.command(name="start", description="Start a timer", guild=guild_scope)
    @app_commands.choices(mode=MODE_CHOICES)
    async def start(interaction: discord.Interaction, mode: app_commands.Choice[str], job: str | None = None):
        def build() -> str:
            session = tracker.start_session(str(interaction.user.id), mode.value, utc_now(), job_number=job)
            return f"{mode.name} timer started for {session.attributed_date.isoformat()}."

        await _respond(bot, interaction, "start", build)

    @bot.tree.command(name="stop", description="Stop the running timer", guild=guild_scope)
    @app_commands.choices(mode=MODE_CHOICES)
    @app_commands.describe(amount="Amount paid for the job (payment mode)")
    async def stop(
        interaction: discord.Interaction,
        mode: app_commands.Choice[str],
        amount: float | None = None,
        job: str | None = None,
    ):
        def build() -> str:
            now = utc_now()
            user_id = str(interaction.user.id)
            session = tracker.stop_session(user_id, mode.value, now, amount=amount, job_number=job)
            week = tracker.current_week(user_id, now)
            return "\n".join([f"{mode.name} timer stopped.", build_session_line(session), build_week_line(week)])

        await _respond(bot, interaction, "stop", build)

    @bot.tree.command(name="status", description="Show the running timer", guild=guild_scope)
    @app_commands.choices(mode=MODE_CHOICES)
    async def status(interaction: discord.Interaction, mode: app_commands.Choice[str]):
        def build() -> str:
            session = tracker.get_active_session(str(interaction.user.id), mode.value)
            if session is None:
                return f"No {mode.name.lower()} timer running."
            elapsed = tracker.elapsed_seconds(session, utc_now())
            lines = [f"{mode.name} timer running: `{format_seconds(elapsed)}`"]
            if session.job_number:
                lines.append(f"Job: `{session.job_number}`")
            return "\n".join(lines)

        await _respond(bot, interaction, "status", build)

    @bot.tree.command(name="job", description="Set the job number of the running timer", guild=guild_scope)
    @app_commands.choices(mode=MODE_CHOICES)
    async def job(interaction: discord.Interaction, mode: app_commands.Choice[str], job_number: str):
        def build() -> str:
            session = tracker.set_job_number(str(interaction.user.id), mode.value, job_number)
            return f"Job number set to `{session.job_number}`."

        await _respond(bot, interaction, "job", build)

    @bot.tree.command(name="log", description="Log hours worked on a day", guild=guild_scope)
    @app_commands.choices(mode=MODE_CHOICES)
    @app_commands.describe(day="Date as YYYY-MM-DD", hours="Hours worked", amount="Amount paid (payment mode)")
    async def log(
        interaction: discord.Interaction,
        mode: app_commands.Choice[str],
        day: str,
        hours: float,
        amount: float | None = None,
        job: str | None = None,
    ):
        def build() -> str:
            session = tracker.log_manual_session(
                str(interaction.user.id),
                mode.value,
                date.fromisoformat(day.strip()),
                round(hours * 3600),
                amount=amount,
                job_number=job,
            )
            return f"Logged:\n{build_session_line(session)}"

        await _respond(bot, interaction, "log", build)

    @bot.tree.command(name="edit", description="Change the times of a session", guild=guild_scope)
    @app_commands.describe(
        session_id="Session id shown in reports",
        start="Start as YYYY-MM-DD HH:MM (Florida time)",
        end="End as YYYY-MM-DD HH:MM (Florida time)",
        day="Day the session counts toward, YYYY-MM-DD",
    )
    async def edit(
        interaction: discord.Interaction,
        session_id: str,
        start: str,
        end: str,
        day: str | None = None,
        amount: float | None = None,
        job: str | None = None,
    ):
        def build() -> str:
            session = tracker.edit_session(
                session_id.strip(),
                parse_business_datetime(start),
                parse_business_datetime(end),
                attributed_date=date.fromisoformat(day.strip()) if day else None,
                amount=amount,
                job_number=job,
                user_id=str(interaction.user.id),
            )
            return f"Updated:\n{build_session_line(session)}"

        await _respond(bot, interaction, "edit", build)

    @bot.tree.command(name="delete", description="Delete a session", guild=guild_scope)
    async def delete(interaction: discord.Interaction, session_id: str):
        def build() -> str:
            session = tracker.delete_session(session_id.strip(), user_id=str(interaction.user.id))
            return f"Deleted session from {session.attributed_date.isoformat()}."

        await _respond(bot, interaction, "delete", build)

    @bot.tree.command(name="week", description="Show this week's totals", guild=guild_scope)
    async def week(interaction: discord.Interaction):
        await _respond(bot, interaction, "week", lambda: reporter.build_week_report(str(interaction.user.id), utc_now()))

    @bot.tree.command(name="month", description="Show a month's totals", guild=guild_scope)
    async def month(interaction: discord.Interaction, year: int | None = None, month: int | None = None):
        def build() -> str:
            today = business_date_of(utc_now())
            target_month = month or today.month
            if not 1 <= target_month <= 12:
                raise ValueError("month must be between 1 and 12")
            return reporter.build_month_report(str(interaction.user.id), year or today.year, target_month)

        await _respond(bot, interaction, "month", build)

    @bot.tree.command(name="summary", description="Weekly totals for recent weeks", guild=guild_scope)
    @app_commands.describe(weeks="How many weeks back to include")
    async def summary(interaction: discord.Interaction, weeks: app_commands.Range[int, 1, 52] = 8):
        def build() -> str:
            today = business_date_of(utc_now())
            return reporter.build_summary_report(
                str(interaction.user.id),
                today - timedelta(weeks=weeks),
                today,
            )

        await _respond(bot, interaction, "summary", build)

    @bot.tree.command(name="company-week", description="Record what the company paid for a week", guild=guild_scope)
    async def company_week(interaction: discord.Interaction, week: int, year: int, amount: float):
        def build() -> str:
            row = tracker.record_week_company_payment(str(interaction.user.id), week, year, amount)
            return f"Recorded.\n{build_week_line(row)}"

        await _respond(bot, interaction, "company-week", build)

    @bot.tree.command(name="company-month", description="Record what the company paid for a month", guild=guild_scope)
    @app_commands.describe(amount="Leave empty to clear")
    async def company_month(interaction: discord.Interaction, year: int, month: int, amount: float | None = None):
        def build() -> str:
            row = tracker.record_month_company_payment(str(interaction.user.id), year, month, amount)
            if row.company_paid is None:
                return f"Cleared company payment for {year}-{month:02d}."
            return f"Recorded {format_currency(row.company_paid)} for {year}-{month:02d}."

        await _respond(bot, interaction, "company-month", build)
