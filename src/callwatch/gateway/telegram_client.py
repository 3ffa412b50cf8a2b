"""
Telegram Bot Client.

Primary messaging transport for broadcasts and the command surface for
status queries and subscriptions.
"""

from pathlib import Path
from typing import Optional

import structlog
from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import Application, CommandHandler

from .commands import CommandService
from .formatters import format_for_telegram

logger = structlog.get_logger(__name__)

HELP_TEXT = (
    "📚 Commands\n\n"
    "/status - check the listing right now\n"
    "/subscribe - receive change notifications\n"
    "/unsubscribe - stop receiving notifications\n"
    "/help - this message"
)


class TelegramClient:
    """Async Telegram Bot API integration."""

    def __init__(self, token: str, commands: Optional[CommandService] = None):
        """
        Initialize TelegramClient.

        Args:
            token: Telegram bot token from @BotFather
            commands: CommandService answering chat commands; when None the
                client only sends messages
        """
        self.token = token
        self.commands = commands
        self.application = None

    def build(self) -> Application:
        """Build the application and register handlers (no network I/O)."""
        # Chats are served concurrently; a /status fetch can take the full fetch timeout
        self.application = (
            Application.builder()
            .token(self.token)
            .concurrent_updates(True)
            .build()
        )

        if self.commands is not None:
            self.application.add_handler(CommandHandler("start", self.cmd_start))
            self.application.add_handler(CommandHandler("help", self.cmd_help))
            self.application.add_handler(CommandHandler(["status", "star"], self.cmd_status))
            self.application.add_handler(CommandHandler("subscribe", self.cmd_subscribe))
            self.application.add_handler(CommandHandler("unsubscribe", self.cmd_unsubscribe))
            self.application.add_handler(CommandHandler("stats", self.cmd_stats))
        self.application.add_error_handler(self.on_error)
        return self.application

    async def start(self):
        """Initialize the bot and start long polling."""
        logger.info("telegram_bot_starting")
        if self.application is None:
            self.build()

        await self.application.initialize()
        await self.application.start()
        if self.commands is not None:
            await self.application.updater.start_polling(drop_pending_updates=True)

        logger.info("telegram_bot_started")

    async def stop(self):
        """Stop the bot gracefully."""
        if self.application:
            logger.info("telegram_bot_stopping")
            if self.application.updater and self.application.updater.running:
                await self.application.updater.stop()
            if self.application.running:
                await self.application.stop()
            await self.application.shutdown()
            logger.info("telegram_bot_stopped")

    async def on_error(self, update: object, context) -> None:
        """Log handler errors without stopping the bot."""
        logger.error(
            "telegram_handler_error",
            error=str(context.error),
            error_type=type(context.error).__name__,
        )

    async def _reply(self, update: Update, text: str) -> None:
        for chunk in format_for_telegram(text):
            await update.message.reply_text(chunk, parse_mode=ParseMode.HTML)

    async def _run_command(self, update: Update, name: str, handler) -> None:
        # Null-safety check
        if not update.message or not update.effective_chat:
            logger.warning("received_update_without_message_or_chat", command=name)
            return

        chat_id = str(update.effective_chat.id)
        logger.info("telegram_command_received", command=name, chat_id=chat_id)

        try:
            response = await handler(chat_id)
        except Exception as e:
            logger.error(
                "command_handling_error",
                command=name,
                chat_id=chat_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await update.message.reply_text("❌ An error occurred processing your request.")
            return

        if response:
            await self._reply(update, response)

    async def cmd_start(self, update: Update, context):
        """Handle /start command."""
        if not update.message or not update.effective_chat:
            return
        await update.message.reply_text(
            "👋 Welcome!\n\n"
            "I watch the job listing and tell you when the announcement changes.\n\n"
            "Send /subscribe to get notifications or /status to check now."
        )

    async def cmd_help(self, update: Update, context):
        """Handle /help command."""
        if not update.message or not update.effective_chat:
            return
        await update.message.reply_text(HELP_TEXT)

    async def cmd_status(self, update: Update, context):
        """Handle /status and /star."""

        async def acknowledge():
            await update.message.reply_text("Checking the page... ⏳")

        await self._run_command(
            update,
            "status",
            lambda chat_id: self.commands.handle_status(chat_id, on_accepted=acknowledge),
        )

    async def cmd_subscribe(self, update: Update, context):
        await self._run_command(update, "subscribe", self.commands.handle_subscribe)

    async def cmd_unsubscribe(self, update: Update, context):
        await self._run_command(update, "unsubscribe", self.commands.handle_unsubscribe)

    async def cmd_stats(self, update: Update, context):
        await self._run_command(update, "stats", self.commands.handle_stats)

    async def send_text(self, recipient: str, text: str) -> bool:
        """
        Send an HTML message to a chat.

        Returns:
            True if successful, False otherwise
        """
        try:
            await self.application.bot.send_message(
                chat_id=recipient,
                text=text,
                parse_mode=ParseMode.HTML,
            )
            logger.info("notification_sent", chat_id=recipient)
            return True
        except Exception as e:
            logger.error(
                "send_message_error",
                chat_id=recipient,
                error=str(e),
                error_type=type(e).__name__
            )
            return False

    async def send_image(self, recipient: str, image: Path, caption: Optional[str]) -> bool:
        """
        Send a photo with an optional HTML caption.

        Returns:
            True if successful, False otherwise
        """
        try:
            with open(image, "rb") as photo:
                await self.application.bot.send_photo(
                    chat_id=recipient,
                    photo=photo,
                    caption=caption,
                    parse_mode=ParseMode.HTML if caption else None,
                )
            logger.info("notification_photo_sent", chat_id=recipient)
            return True
        except Exception as e:
            logger.error(
                "send_photo_error",
                chat_id=recipient,
                error=str(e),
                error_type=type(e).__name__
            )
            return False
