from dataclasses import dataclass, field
from decimal import Decimal
from html import escape
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Button:
    text: str
    data: str


@dataclass(frozen=True)
class Reply:
    text: str
    keyboard: Tuple[Tuple[Button, ...], ...] = field(default_factory=tuple)
    parse_mode: Optional[str] = None

    def buttons(self) -> List[Button]:
        return [button for row in self.keyboard for button in row]

    def to_markup(self) -> Optional[dict]:
        if not self.keyboard:
            return None
        return {
            "inline_keyboard": [
                [{"text": b.text, "callback_data": b.data} for b in row]
                for row in self.keyboard
            ]
        }


NOTE_KEYBOARD = (
    (Button("✍️ הוסף הערה", "note_add"), Button("⏩ דלג ושמור", "note_skip")),
)

GREETING = "שלום! אני בוט הניהול הפיננסי שלך.\nכדי להתחיל, פשוט שלח לי את הסכום של התנועה (למשל: 100)."
NOT_UNDERSTOOD = "לא הבנתי... שלח לי מספר (סכום) כדי להתחיל."
SESSION_EXPIRED = "הסשן פג תוקף"
STALE_BUTTON = "הכפתור הזה כבר לא פעיל"
UNKNOWN_CATEGORY = "הקטגוריה לא נמצאה"
USE_BUTTONS = "בחר אחת מהאפשרויות בכפתורים שלמעלה, או שלח /cancel כדי להתחיל מחדש."
EMPTY_NAME = "השם לא יכול להיות ריק. רשום שם לקטגוריה:"
CANCELLED = "בוטל. שלח סכום חדש כשתרצה."
NOTHING_TO_CANCEL = "אין פעולה פתוחה לביטול."
CATEGORY_FAILED = "שגיאה ביצירת הקטגוריה."
SUB_CATEGORY_FAILED = "שגיאה ביצירת תת-הקטגוריה."
SAVE_FAILED = "אופס, קרתה שגיאה בשמירה."
LOOKUP_FAILED = "אופס, לא הצלחתי לטעון את הקטגוריות. נסה שוב."


def format_amount(amount: Decimal) -> str:
    if amount == amount.to_integral_value():
        return f"{amount.to_integral_value():,}"
    return f"{amount.normalize():,}"


def type_prompt(amount: Decimal) -> Reply:
    return Reply(
        f"קיבלתי: {format_amount(amount)} ₪.\nהאם זו הוצאה או הכנסה?",
        ((Button("🔴 הוצאה", "type_expense"), Button("🟢 הכנסה", "type_income")),),
    )


def parent_prompt(roots: Sequence) -> Reply:
    rows = [(Button(c.name, f"parent_{c.id}"),) for c in roots]
    rows.append((Button("➕ הוסף קטגוריה חדשה", "new_parent"),))
    return Reply("בחר קטגוריה ראשית:", tuple(rows))


def sub_prompt(parent, subs: Sequence) -> Reply:
    rows = [(Button(f"↳ {c.name}", f"sub_{c.id}"),) for c in subs]
    rows.append((Button("✅ סיים כאן (בלי תת-קטגוריה)", f"sub_{parent.id}"),))
    rows.append((Button("➕ הוסף תת-קטגוריה חדשה", "new_sub"),))
    return Reply(f"בחר תת-קטגוריה תחת <b>{escape(parent.name)}</b>:", tuple(rows), parse_mode="HTML")


def note_prompt(category_name: str) -> Reply:
    return Reply(
        f"נבחר: <b>{escape(category_name)}</b>.\nתרצה להוסיף הערה לתנועה?",
        NOTE_KEYBOARD,
        parse_mode="HTML",
    )


def category_created_prompt(name: str, sub: bool) -> Reply:
    if sub:
        text = f'מעולה! תת-הקטגוריה "{name}" נוספה.\nתרצה להוסיף הערה לתנועה?'
    else:
        text = f'סידרתי! הקטגוריה "{name}" נוספה.\nתרצה להוסיף הערה לתנועה?'
    return Reply(text, NOTE_KEYBOARD)


def ask_category_name(sub: bool) -> Reply:
    if sub:
        return Reply("רשום לי עכשיו את השם של תת-הקטגוריה החדשה:")
    return Reply("רשום לי עכשיו את השם של הקטגוריה החדשה שאתה רוצה ליצור:")


def ask_note() -> Reply:
    return Reply("רשום לי עכשיו את ההערה שלך:")


def saved(amount: Decimal, category_name: str, note: Optional[str] = None) -> Reply:
    text = f"נשמר בהצלחה! ✅\n{format_amount(amount)} ₪ (<b>{escape(category_name)}</b>)"
    if note:
        text += f"\nהערה: {escape(note)}"
    return Reply(text, parse_mode="HTML")
