from shiny import module, ui, render, reactive, req
from shinywidgets import output_widget, render_widget
import pandas as pd
import plotly.express as px

from calculations.statistics import format_number
from config import get_settings
from shared import (
    apply_classic_theme,
    export_to_csv,
    export_to_excel,
    fold_change_rows_to_frame,
    format_all_normalized_as_tsv,
    normalized_rows_to_frame,
    outputs_to_frame,
)


@module.ui
def output_ui():
    return ui.TagList(
        ui.card(
            ui.card_header("Output (normalized to control average)"),
            ui.input_select("gene", "Target gene:", choices=[]),
            ui.layout_columns(
                ui.card(
                    ui.card_header("2^-ΔΔCT values"),
                    ui.output_data_frame("fold_change_table"),
                    ui.output_text("control_average"),
                ),
                ui.card(
                    ui.card_header("Normalized values"),
                    ui.output_data_frame("normalized_table"),
                ),
                col_widths=[6, 6],
            ),
            ui.output_ui("ignored_genes"),
        ),
        ui.layout_columns(
            ui.download_button("download_tsv", "Download normalized (.tsv)"),
            ui.download_button("download_xlsx", "Download Excel (.xlsx)"),
            ui.download_button("download_csv", "Download CSV (.csv)"),
            col_widths=[3, 3, 3],
        ),
        ui.card(
            ui.card_header("Normalized Expression Plot"),
            output_widget("normalized_plot"),
        ),
    )


@module.server
def output_server(input, output, session, result_reactive, ignored_reactive):
    """Server logic for the fold-change / normalized output tables.

    Parameters
    ----------
    result_reactive : reactive.Calc
        Returns the current PipelineResult or None.
    ignored_reactive : reactive.Calc
        Returns the list of genes that produced no output tables.
    """
    decimals = get_settings().DISPLAY_DECIMALS

    @reactive.calc
    def outputs():
        result = result_reactive()
        if result is None:
            return {}
        return result.output_results

    @reactive.effect
    @reactive.event(outputs)
    def update_gene_choices():
        genes = list(outputs())
        selected = input.gene() if input.gene() in genes else (genes[0] if genes else None)
        ui.update_select("gene", choices=genes, selected=selected)

    @reactive.calc
    def selected_output():
        gene = input.gene()
        req(gene in outputs())
        return outputs()[gene]

    @render.data_frame
    def fold_change_table():
        return fold_change_rows_to_frame(selected_output()).round(decimals)

    @render.text
    def control_average():
        return f"Average: {format_number(selected_output().control_average, decimals)}"

    @render.data_frame
    def normalized_table():
        return normalized_rows_to_frame(selected_output()).round(decimals)

    @render.ui
    def ignored_genes():
        ignored = ignored_reactive()
        if not ignored:
            return None
        return ui.div(
            ui.strong("Genes excluded from output (no normalized tables):"),
            ui.tags.ul(*[ui.tags.li(gene) for gene in ignored]),
        )

    # ---- Downloads ----

    @render.download(filename="normalized_values.tsv")
    def download_tsv():
        req(outputs())
        yield format_all_normalized_as_tsv(outputs(), decimals).encode("utf-8")

    @render.download(filename="ddct_output.xlsx")
    def download_xlsx():
        req(outputs())
        yield export_to_excel(outputs_to_frame(outputs()))

    @render.download(filename="ddct_output.csv")
    def download_csv():
        req(outputs())
        yield export_to_csv(outputs_to_frame(outputs()))

    # ---- Plots ----

    @render_widget
    def normalized_plot():
        data = outputs_to_frame(outputs())
        if data.empty:
            return apply_classic_theme(px.scatter(title="No data to display"))

        control = (
            data[data["Control"] != ""][["Gene", "Control", "norm Control"]]
            .rename(columns={"Control": "Sample", "norm Control": "Normalized"})
            .assign(Role="Control")
        )
        observed = (
            data[data["Observed"] != ""][["Gene", "Observed", "norm Observed"]]
            .rename(columns={"Observed": "Sample", "norm Observed": "Normalized"})
            .assign(Role="Observed")
        )
        plot_data = pd.concat([control, observed], ignore_index=True)

        fig = px.bar(
            plot_data,
            x="Sample",
            y="Normalized",
            color="Role",
            facet_col="Gene",
            labels={"Normalized": "2^-ΔΔCT / control average", "Sample": ""},
            title="Relative Expression Normalized to Control Average",
        )
        fig.add_hline(y=1.0, line_dash="dot", line_color="grey")
        apply_classic_theme(fig)
        return fig
