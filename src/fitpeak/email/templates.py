"""
Notification email templates for FITPEAK.

Inline CSS only, for email client compatibility. One template per
notification event; the wording is fixed Japanese copy.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape

# Color constants
BG_PAGE = "#F5F5F4"
BG_CARD = "#FFFFFF"
ACCENT = "#F97316"
TEXT_PRIMARY = "#1C1917"
TEXT_SECONDARY = "#57534E"
BORDER = "#E7E5E4"

APP_NAME = "FITPEAK"
FOOTER_NOTE = "※ 本メールは FITPEAK から自動送信されています。"


def _base_layout(content: str) -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="ja">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{APP_NAME}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: 'Hiragino Sans', 'Noto Sans JP', sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="560" style="max-width: 560px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 22px; font-weight: 800; color: {ACCENT}; letter-spacing: 2px;">{APP_NAME}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 32px 28px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">{FOOTER_NOTE}</p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _paragraphs(*lines: str) -> str:
    return "\n".join(
        f'<p style="color: {TEXT_PRIMARY}; font-size: 15px; line-height: 1.7; margin: 0 0 16px 0;">{escape(line)}</p>'
        for line in lines
    )


def _render(subject: str, *lines: str) -> tuple[str, str, str]:
    html_body = _base_layout(_paragraphs(*lines))
    text_body = "\n\n".join((*lines, FOOTER_NOTE))
    return subject, html_body, text_body


def follow_email(follower_name: str) -> tuple[str, str, str]:
    """Someone followed the recipient."""
    return _render(
        f"【FITPEAK】{follower_name}さんがあなたをフォローしました",
        f"{follower_name}さんがあなたをフォローしました。",
        "FITPEAK でプロフィールをのぞいて、フォロワーとのつながりを深めましょう。",
    )


def individual_message_email(sender_name: str) -> tuple[str, str, str]:
    """New direct message."""
    return _render(
        f"【FITPEAK】{sender_name}さんからメッセージが届きました",
        f"{sender_name}さんからダイレクトメッセージが届きました。",
        "FITPEAK のメッセージ一覧からチャットを開いてご確認ください。",
    )


def group_message_email(sender_name: str, group_name: str) -> tuple[str, str, str]:
    """New message in a group (or recruitment) chat room."""
    return _render(
        f"【FITPEAK】グループ「{group_name}」で新しいメッセージが届きました",
        f"{sender_name}さんがグループ「{group_name}」でメッセージを送信しました。",
        "FITPEAK のメッセージ一覧からグループチャットを開いてご確認ください。",
    )


def recruitment_apply_email(applicant_name: str, recruitment_title: str) -> tuple[str, str, str]:
    """Someone applied to the recipient's recruitment post."""
    return _render(
        "【FITPEAK】合トレに参加申請が届きました",
        f"{applicant_name}さんから「{recruitment_title}」への参加申請が届きました。",
        "FITPEAK の通知画面、または募集管理ページからご確認のうえ、参加の可否をご返答ください。",
    )


def participation_approved_email(recruitment_title: str) -> tuple[str, str, str]:
    """The recipient's application was approved."""
    return _render(
        f"【FITPEAK】「{recruitment_title}」への参加が承認されました",
        f"「{recruitment_title}」への参加が承認されました。",
        "FITPEAK のメッセージ一覧から合トレのチャットルームに参加できます。",
    )
