import mimetypes
import uuid
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from chat.controller import ConversationController, ControllerState
from chat.types import Attachment

HELP_TEXT = """Commands:
  /new                 start a new conversation
  /list                list your conversations
  /open <id>           switch conversation
  /delete [id]         delete a conversation (default: current)
  /image <path> [text] send an image with optional text
  /history             reprint the current conversation
  /quit                exit
Anything else is sent as a message."""


class Command(BaseCommand):
    help = "Chat with the crop-health assistant from the terminal."

    def add_arguments(self, parser):
        parser.add_argument("--user", required=True, help="UUID of the end user")
        parser.add_argument("--chat", help="conversation to open (default: most recent)")

    def handle(self, *args, **opts):
        try:
            user_id = uuid.UUID(opts["user"])
        except ValueError:
            raise CommandError("--user must be a UUID")

        self.seen = set()
        controller = ConversationController(user_id, on_change=self._print_new)
        try:
            if opts.get("chat"):
                try:
                    controller.select_conversation(opts["chat"])
                except LookupError as e:
                    raise CommandError(str(e))
            else:
                controller.open()
            self.stdout.write(f"Conversation {controller.chat_id}. Type /help for commands.")
            self._loop(controller)
        finally:
            controller.close()

    def _loop(self, controller):
        while True:
            try:
                line = input("> ").strip()
            except (EOFError, KeyboardInterrupt):
                self.stdout.write("")
                return
            if not line:
                continue
            if line in ("/quit", "/exit"):
                return
            self._dispatch(controller, line)

    def _dispatch(self, controller, line):
        cmd, _, rest = line.partition(" ")
        rest = rest.strip()

        if cmd == "/help":
            self.stdout.write(HELP_TEXT)
        elif cmd == "/new":
            self.seen.clear()
            controller.create_conversation()
            self.stdout.write(f"New conversation {controller.chat_id}")
        elif cmd == "/list":
            for chat in controller.list_conversations():
                marker = "*" if chat.id == controller.chat_id else " "
                self.stdout.write(f"{marker} {chat.id}  {chat.updated_at[:16]}  {chat.title}")
        elif cmd == "/open":
            try:
                controller.select_conversation(rest)
            except LookupError as e:
                self.stderr.write(str(e))
                return
            self.seen.clear()
        elif cmd == "/delete":
            try:
                controller.delete_conversation(rest or controller.chat_id)
            except LookupError as e:
                self.stderr.write(str(e))
                return
            self.seen.clear()
            self.stdout.write(f"Deleted. Now in conversation {controller.chat_id}")
        elif cmd == "/history":
            self.seen.clear()
            self._print_new(controller.turns)
        elif cmd == "/image":
            path, _, text = rest.partition(" ")
            self._send_image(controller, path, text)
        else:
            self._send(controller, line)

    def _send_image(self, controller, path, text):
        p = Path(path).expanduser()
        if not p.is_file():
            self.stderr.write(f"No such file: {path}")
            return
        attachment = Attachment(
            filename=p.name,
            content=p.read_bytes(),
            content_type=mimetypes.guess_type(p.name)[0] or "application/octet-stream",
        )
        self._send(controller, text, attachment)

    def _send(self, controller, text, image=None):
        self.stdout.write("Analyzing...")
        controller.send(text, image)
        if controller.state == ControllerState.ERROR:
            self.stderr.write(controller.error or "")
            controller.dismiss_error()

    def _print_new(self, turns):
        for turn in turns:
            if turn.id in self.seen:
                continue
            self.seen.add(turn.id)
            who = "you" if turn.role == "user" else "AgriBot"
            image = f" [image: {turn.image_url}]" if turn.image_url else ""
            self.stdout.write(f"{who}:{image} {turn.content}")
