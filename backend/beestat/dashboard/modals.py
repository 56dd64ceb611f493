from __future__ import annotations

from beestat.dashboard import style
from beestat.dashboard.component import Modal
from beestat.dashboard.elements import Element


class HelpRecentActivityModal(Modal):
    def decorate_contents(self, parent: Element) -> None:
        parent.append_child(
            Element(
                "p",
                text=(
                    "View up to the past 7 days of thermostat activity in 5-minute "
                    "resolution. This can help you visualize daily runtime trends and "
                    "identify acute system issues. Compare to the Home IQ System & "
                    "Follow Me charts."
                ),
            )
        )
        table = parent.append_child(Element("table", style={"color": style.COLOR["blue_base"]}))
        row = table.append_child(Element("tr"))
        row.append_child(Element("td", attributes={"valign": "top"}))

    def get_title(self) -> str:
        return "Recent Activity - Help"
