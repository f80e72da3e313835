from django.db import migrations, models


def backfill_seq(apps, schema_editor):
    Message = apps.get_model("chat", "Message")
    current_chat, n = None, 0
    for message in Message.objects.order_by("chat_id", "created_at", "id").iterator():
        if message.chat_id != current_chat:
            current_chat, n = message.chat_id, 0
        n += 1
        Message.objects.filter(pk=message.pk).update(seq=n)


class Migration(migrations.Migration):

    dependencies = [
        ("chat", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="message",
            name="seq",
            field=models.PositiveIntegerField(default=0, editable=False),
            preserve_default=False,
        ),
        migrations.RunPython(backfill_seq, migrations.RunPython.noop),
        migrations.AlterModelOptions(
            name="message",
            options={"ordering": ["created_at", "seq"]},
        ),
        migrations.AddConstraint(
            model_name="message",
            constraint=models.UniqueConstraint(fields=["chat", "seq"], name="messages_chat_seq_unique"),
        ),
    ]
